"""
Base strategy interface for dialect-specific behaviour.

The record layer compiles the same ``?``-placeholder SQL for every database.
A strategy covers what differs underneath it: how to build the engine, how
to configure a checked-out DB-API connection, which placeholder style the
driver expects, how to bound a statement by a deadline, and how to read back
a generated identifier.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any

from dbrecords.exceptions import ValidationError

if TYPE_CHECKING:
    from dbrecords.options import DatabaseOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for database-specific operations."""

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'postgresql', 'sqlite')."""

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the SQLAlchemy connection URL for this dialect."""

    @abstractmethod
    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect."""

    @abstractmethod
    def configure_connection(self, raw_conn: Any) -> None:
        """Configure a freshly checked-out DB-API connection."""

    @abstractmethod
    def deadline(self, raw_conn: Any, seconds: float) -> AbstractContextManager:
        """Bound every statement run on ``raw_conn`` inside the block.

        A statement still running when the deadline passes is cancelled by
        the database and surfaces as a driver error that
        :func:`dbrecords.exceptions.translate_errors` maps to
        ``StatementTimeout``.
        """

    @abstractmethod
    def last_insert_id(self, raw_conn: Any, cursor: Any) -> int | None:
        """Return the identifier generated by the last INSERT, if any."""

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect."""

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Raise ValidationError if a required option is missing."""
        missing = [name for name in cls.get_required_options()
                   if getattr(options, name, None) in {None, ''}]
        if missing:
            raise ValidationError(
                f'Missing required options for {options.drivername}: {missing}')

    def standardize_sql(self, sql: str, params: Any = None) -> str:
        """Convert placeholders to this dialect's style.

        Default implementation is a no-op.
        """
        return sql
