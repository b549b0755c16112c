"""
Result cursor handed back by queries.

A ``ResultCursor`` is live: it keeps its pooled connection checked out (and
any statement deadline armed) until it is closed or exhausted. Callers drive
it by iterating rows, or hand it to the row binder.
"""
import logging
import time
from collections.abc import Callable, Iterator, Sequence
from functools import wraps
from typing import Any, Self

from dbrecords.exceptions import translate_errors

logger = logging.getLogger(__name__)

FETCH_SIZE = 500


def dumpsql(func):
    """Decorator for logging SQL statements and parameters."""
    @wraps(func)
    def wrapper(self, operation: str, params: Sequence | None = None, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {params}')
        try:
            return func(self, operation, params, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {params}')
            raise
        finally:
            elapsed = time.time() - start
            if self.database is not None:
                self.database.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class ResultCursor:
    """Thin wrapper over a DB-API cursor.

    Exposes the column names of the current result set and iterates rows as
    tuples. Driver errors raised while executing or fetching are translated
    into dbrecords exceptions.
    """

    def __init__(self, cursor: Any, database: Any = None,
                 release: Callable[[], None] | None = None) -> None:
        """Initialize cursor wrapper.

        Args:
            cursor: The underlying DB-API cursor
            database: The Database that created this cursor, for statistics
            release: Called once when the cursor is closed, to return the
                connection to the pool
        """
        self.dbapi_cursor = cursor
        self.database = database
        self._release = release
        self._sql: str | None = None
        self.closed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple]:
        """Yield remaining rows, fetching in chunks.

        The cursor is closed once the last row has been read.
        """
        while True:
            chunk = self.fetchmany(FETCH_SIZE)
            if not chunk:
                break
            yield from chunk
        self.close()

    @dumpsql
    def execute(self, operation: str, params: Sequence | None = None) -> Self:
        """Execute a statement with positional parameters."""
        self._sql = operation
        with translate_errors(operation):
            if params:
                self.dbapi_cursor.execute(operation, tuple(params))
            else:
                self.dbapi_cursor.execute(operation)
        return self

    @property
    def columns(self) -> list[str]:
        """Column names of the current result set, in result order."""
        description = self.dbapi_cursor.description
        if description is None:
            return []
        return [desc[0] for desc in description]

    @property
    def rowcount(self) -> int:
        """Number of rows produced/affected by last operation."""
        return self.dbapi_cursor.rowcount

    def fetchone(self) -> tuple | None:
        """Fetch next row."""
        if self.closed:
            return None
        with translate_errors(self._sql):
            row = self.dbapi_cursor.fetchone()
        return tuple(row) if row is not None else None

    def fetchmany(self, size: int = FETCH_SIZE) -> list[tuple]:
        """Fetch next set of rows."""
        if self.closed:
            return []
        with translate_errors(self._sql):
            return [tuple(row) for row in self.dbapi_cursor.fetchmany(size)]

    def fetchall(self) -> list[tuple]:
        """Fetch all remaining rows."""
        if self.closed:
            return []
        with translate_errors(self._sql):
            return [tuple(row) for row in self.dbapi_cursor.fetchall()]

    def close(self) -> None:
        """Close the cursor and release its connection. Safe to call twice."""
        if self.closed:
            return
        self.closed = True
        try:
            self.dbapi_cursor.close()
        finally:
            if self._release is not None:
                self._release()
                self._release = None
