"""
SQLite-specific strategy implementation.

SQLite runs in-process, so there is no server-side statement timeout. The
deadline is enforced with a progress handler that aborts the running
statement once the wall clock passes the deadline; SQLite then raises
``OperationalError: interrupted``.
"""
import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from dbrecords.sql import standardize_placeholders
from dbrecords.strategy.base import DatabaseStrategy, register_strategy
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from dbrecords.options import DatabaseOptions

logger = logging.getLogger(__name__)

# Number of SQLite virtual machine instructions between deadline checks
PROGRESS_STEPS = 1000


def is_memory_database(database: str | None) -> bool:
    """Check whether the database name refers to a private in-memory database."""
    return not database or database == ':memory:'


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations."""

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the SQLAlchemy connection URL for SQLite."""
        if is_memory_database(options.database):
            return 'sqlite://'
        return f'sqlite:///{options.database}'

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite.

        An in-memory database only exists inside one connection, so every
        checkout must hand out that same connection.
        """
        if is_memory_database(options.database):
            return {
                'poolclass': StaticPool,
                'connect_args': {'check_same_thread': False},
            }
        return {}

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure connection settings for SQLite."""
        raw_conn.isolation_level = None
        raw_conn.execute('PRAGMA foreign_keys = ON')

    @contextmanager
    def deadline(self, raw_conn: Any, seconds: float):
        """Abort statements on ``raw_conn`` that run past ``seconds``."""
        expires = time.monotonic() + seconds

        def expired() -> int:
            return 1 if time.monotonic() > expires else 0

        raw_conn.set_progress_handler(expired, PROGRESS_STEPS)
        logger.debug(f'SQLite deadline set to {seconds:.2f}s')
        try:
            yield
        finally:
            raw_conn.set_progress_handler(None, PROGRESS_STEPS)

    def last_insert_id(self, raw_conn: Any, cursor: Any) -> int | None:
        """SQLite reports the rowid of the last inserted row on the cursor."""
        return cursor.lastrowid or None

    @classmethod
    def get_required_options(cls) -> list[str]:
        """SQLite defaults to an in-memory database when none is given."""
        return []

    def standardize_sql(self, sql: str, params: Any = None) -> str:
        """Convert PostgreSQL-style placeholders (%s) to SQLite-style (?)."""
        return standardize_placeholders(sql, dialect='sqlite')


__all__ = ['SQLiteStrategy', 'is_memory_database']
