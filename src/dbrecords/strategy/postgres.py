"""
PostgreSQL-specific strategy implementation.

Connections run in autocommit mode. Statement deadlines use the server-side
``statement_timeout`` setting for the duration of the block, and generated
identifiers are read back with ``lastval()``.
"""
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import psycopg
import sqlalchemy as sa
from dbrecords.sql import standardize_placeholders
from dbrecords.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from dbrecords.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations."""

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {'application_name': options.appname}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        url = sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query,
        )
        return url.render_as_string(hide_password=False)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for PostgreSQL."""
        return {}

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure connection settings for PostgreSQL."""
        raw_conn.autocommit = True

    @contextmanager
    def deadline(self, raw_conn: Any, seconds: float):
        """Set ``statement_timeout`` for the block and reset it afterwards."""
        millis = max(1, int(seconds * 1000))
        raw_conn.execute(f'SET statement_timeout = {millis}')
        logger.debug(f'PostgreSQL statement_timeout set to {millis}ms')
        try:
            yield
        finally:
            raw_conn.execute('RESET statement_timeout')

    def last_insert_id(self, raw_conn: Any, cursor: Any) -> int | None:
        """Return ``lastval()`` for the session, or None if no sequence was used.

        ``lastval()`` reports the most recent sequence value produced in the
        session, which is the generated key for tables with a serial or
        identity column.
        """
        try:
            row = raw_conn.execute('SELECT lastval()').fetchone()
        except psycopg.errors.ObjectNotInPrerequisiteState:
            logger.debug('No sequence value available in this session')
            return None
        return row[0] if row else None

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database']

    def standardize_sql(self, sql: str, params: Any = None) -> str:
        """Convert SQLite-style placeholders (?) to psycopg-style (%s).

        Without parameters psycopg sends the text verbatim, so nothing needs
        converting or escaping.
        """
        if not params:
            return sql
        return standardize_placeholders(sql, dialect='postgresql')
