"""
Database-specific exception classes.
"""
import logging
import sqlite3
from contextlib import contextmanager

import psycopg
import sqlalchemy.exc

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base class for all dbrecords errors."""


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection."""


class QueryError(DatabaseError):
    """Error in query syntax or execution."""


class IntegrityViolationError(QueryError):
    """Database constraint violation error."""


class StatementTimeout(QueryError):
    """Statement did not finish before its deadline."""


class NotFound(DatabaseError, LookupError):
    """A single-record lookup matched no rows."""


class DestinationShapeError(DatabaseError, TypeError):
    """Destination passed to a binding call has the wrong shape."""


class InvalidInputKind(DatabaseError, TypeError):
    """A record was required but something else was passed."""


class SchemaError(DatabaseError, ValueError):
    """Record type cannot be mapped to a table."""


class ValidationError(DatabaseError):
    """Error in input validation."""


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlalchemy.exc.OperationalError,
    sqlalchemy.exc.InterfaceError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )

DbTimeoutError = (
    psycopg.errors.QueryCanceled,
    )

DriverError = (
    psycopg.Error,
    sqlite3.Error,
    sqlalchemy.exc.DBAPIError,
    )


def _is_interrupted(exc: BaseException) -> bool:
    """SQLite reports an aborted progress handler as 'interrupted'."""
    return isinstance(exc, sqlite3.OperationalError) and 'interrupted' in str(exc).lower()


@contextmanager
def translate_errors(sql: str | None = None):
    """Re-raise driver exceptions as dbrecords exceptions.

    The driver exception is kept as ``__cause__``. Exceptions that already
    belong to this module pass through unchanged.
    """
    context = f': {sql}' if sql else ''
    try:
        yield
    except DatabaseError:
        raise
    except DbTimeoutError as err:
        raise StatementTimeout(f'Statement timed out{context}') from err
    except sqlite3.OperationalError as err:
        if _is_interrupted(err):
            raise StatementTimeout(f'Statement timed out{context}') from err
        raise QueryError(f'{err}{context}') from err
    except IntegrityError as err:
        raise IntegrityViolationError(f'{err}{context}') from err
    except DbConnectionError as err:
        raise ConnectionFailure(str(err)) from err
    except DriverError as err:
        raise QueryError(f'{err}{context}') from err
