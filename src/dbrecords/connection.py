"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for creating a `Database` from options
2. The `Database` class that owns a SQLAlchemy engine and runs statements
3. Engine creation from `DatabaseOptions` through the dialect strategy

A `Database` is safe to share between threads: every statement checks a
connection out of the engine's pool, configures it through the dialect
strategy and returns it when done. Queries hand back a live `ResultCursor`
that holds its connection until closed.
"""
import dataclasses
import logging
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Any, Self

import sqlalchemy as sa
from dbrecords.cursor import ResultCursor
from dbrecords.exceptions import ValidationError, translate_errors
from dbrecords.options import DatabaseOptions
from dbrecords.strategy import DatabaseStrategy, get_strategy
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

__all__ = [
    'Database',
    'ExecResult',
    'connect',
    'create_engine_for_options',
    'load_options',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a statement that returns no rows."""
    rowcount: int
    lastrowid: int | None = None


def create_engine_for_options(options: DatabaseOptions,
                              engine_factory: Callable[..., Engine] = sa.create_engine) -> Engine:
    """Create a SQLAlchemy engine for the given options."""
    strategy = get_strategy(options.drivername)
    url = strategy.build_connection_url(options)

    engine_kwargs: dict[str, Any] = {'echo': False}
    if not options.use_pool:
        engine_kwargs['poolclass'] = NullPool
    else:
        engine_kwargs['pool_size'] = options.pool_max_connections
        engine_kwargs['pool_recycle'] = options.pool_max_idle_time
        engine_kwargs['pool_timeout'] = options.pool_wait_timeout
        engine_kwargs['max_overflow'] = 10
        engine_kwargs['pool_pre_ping'] = True

    dialect_kwargs = strategy.get_engine_kwargs(options)
    if 'poolclass' in dialect_kwargs:
        for key in ('pool_size', 'pool_recycle', 'pool_timeout', 'max_overflow', 'pool_pre_ping'):
            engine_kwargs.pop(key, None)
    engine_kwargs.update(dialect_kwargs)

    engine = engine_factory(url, **engine_kwargs)
    logger.debug(f'Created new engine for {options.drivername}')
    return engine


class Database:
    """Connection collaborator for the record layer.

    Wraps a SQLAlchemy engine and exposes parameterized statement execution
    (`execute`), parameterized queries returning a live cursor (`query`),
    both optionally bound by a deadline, plus `ping` and `close`.

    Tracks the number of statements run and their cumulative time.
    """

    def __init__(self, engine: Engine, options: DatabaseOptions) -> None:
        self.engine = engine
        self.options = options
        self.strategy: DatabaseStrategy = get_strategy(options.drivername)
        self.calls = 0
        self.time = 0.0

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'<Database {self.dialect} {self.options.database!r}>'

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql' or 'sqlite')."""
        return self.strategy.dialect_name

    @property
    def write_timeout(self) -> float:
        """Deadline in seconds applied to create/update/delete statements."""
        return self.options.write_timeout

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics"""
        self.time += elapsed
        self.calls += 1

    @contextmanager
    def checkout(self) -> Iterator[Any]:
        """Check a configured DB-API connection out of the pool."""
        with translate_errors():
            sa_connection = self.engine.connect()
        try:
            raw_conn = sa_connection.connection.driver_connection
            with translate_errors():
                self.strategy.configure_connection(raw_conn)
            yield raw_conn
        finally:
            sa_connection.close()

    def execute(self, sql: str, *args: Any, timeout: float | None = None) -> ExecResult:
        """Execute a statement and return its affected row count.

        For INSERT statements the generated identifier reported by the
        database, if any, is returned as ``lastrowid``.
        """
        with self.checkout() as raw_conn, ExitStack() as stack:
            if timeout is not None:
                with translate_errors(sql):
                    stack.enter_context(self.strategy.deadline(raw_conn, timeout))
            cursor = ResultCursor(raw_conn.cursor(), self)
            try:
                cursor.execute(self.strategy.standardize_sql(sql, args), args)
                lastrowid = None
                if sql.lstrip()[:6].upper() == 'INSERT':
                    with translate_errors(sql):
                        lastrowid = self.strategy.last_insert_id(raw_conn, cursor.dbapi_cursor)
                logger.debug(f'Executed statement with {len(args)} parameters, {cursor.rowcount} rows affected')
                return ExecResult(rowcount=cursor.rowcount, lastrowid=lastrowid)
            finally:
                cursor.close()

    def query(self, sql: str, *args: Any, timeout: float | None = None) -> ResultCursor:
        """Run a query and return a live cursor over its rows.

        The cursor keeps its connection checked out, and the deadline armed
        when ``timeout`` is given, until it is closed or fully iterated.
        """
        stack = ExitStack()
        cursor = None
        try:
            raw_conn = stack.enter_context(self.checkout())
            if timeout is not None:
                with translate_errors(sql):
                    stack.enter_context(self.strategy.deadline(raw_conn, timeout))
            cursor = ResultCursor(raw_conn.cursor(), self, release=stack.close)
            cursor.execute(self.strategy.standardize_sql(sql, args), args)
        except BaseException:
            if cursor is not None:
                cursor.close()
            else:
                stack.close()
            raise
        return cursor

    def ping(self) -> None:
        """Verify the database is reachable.

        Raises ConnectionFailure when it is not.
        """
        with self.query('SELECT 1') as cursor:
            cursor.fetchall()

    def close(self) -> None:
        """Dispose the engine and every pooled connection."""
        self.engine.dispose()
        logger.debug(f'Database closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')


def load_options(options: DatabaseOptions | dict[str, Any] | None = None,
                 **kw: Any) -> DatabaseOptions:
    """Build DatabaseOptions from an options object, a dict and/or keywords.

    Keyword arguments override values from ``options``.
    """
    try:
        if isinstance(options, DatabaseOptions):
            return dataclasses.replace(options, **kw) if kw else options
        if options is None:
            return DatabaseOptions(**kw)
        if isinstance(options, dict):
            return DatabaseOptions(**(options | kw))
    except TypeError as err:
        raise ValidationError(f'Invalid database options: {err}') from err
    raise ValidationError(f'Unsupported options type: {type(options).__name__}')


def connect(options: DatabaseOptions | dict[str, Any] | None = None,
            **kw: Any) -> Database:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - None, with options specified as keyword arguments
        **kw: Additional keyword arguments to override options

    Returns
        Database object for running statements
    """
    options = load_options(options, **kw)
    engine = create_engine_for_options(options)
    return Database(engine, options)
