"""
Record mapping over SQLite and PostgreSQL.

Describe a table once as a dataclass, then create, read, update and delete
rows without writing per-type SQL binding code.

All record operations can be called either as:
- Module functions: dbrecords.first(session, User, 'WHERE id = ?', 7)
- Session methods: session.first(User, 'WHERE id = ?', 7)

The module functions are facades over the Session methods.
"""
__version__ = '0.1.0'

from typing import Any

from dbrecords.connection import Database, ExecResult, connect
from dbrecords.cursor import ResultCursor
from dbrecords.exceptions import ConnectionFailure, DatabaseError
from dbrecords.exceptions import DestinationShapeError, IntegrityViolationError
from dbrecords.exceptions import InvalidInputKind, NotFound, QueryError
from dbrecords.exceptions import SchemaError, StatementTimeout, ValidationError
from dbrecords.executor import AssignsIdentifier, Executor
from dbrecords.options import DatabaseOptions
from dbrecords.query import QueryBuilder
from dbrecords.schema import Field, Schema, SchemaRegistry, describe
from dbrecords.schema import to_snake_case
from dbrecords.session import Session, open
from dbrecords.values import extract_values


def create(session: Session, record: Any) -> ExecResult:
    """Insert a record into its table."""
    return session.create(record)


def find(session: Session, model: Any, into: list | None = None) -> list:
    """Return every row of the model's table as records."""
    return session.find(model, into)


def first(session: Session, model: Any, where: str = '', *args: Any,
          into: Any = None) -> Any:
    """Return the first record matching a WHERE clause.

    Raises NotFound if no row matches.
    """
    return session.first(model, where, *args, into=into)


def update(session: Session, model: Any, values: dict[str, Any],
           where: str = '', *args: Any) -> int:
    """Update fields of the rows matching a WHERE clause."""
    return session.update(model, values, where, *args)


def delete(session: Session, model: Any, where: str = '', *args: Any) -> int:
    """Delete the rows matching a WHERE clause."""
    return session.delete(model, where, *args)


def raw_query(session: Session, sql: str, *args: Any) -> ResultCursor:
    """Run a query and return a live cursor."""
    return session.raw_query(sql, *args)


def raw_query_with_deadline(session: Session, sql: str, *args: Any,
                            timeout: float) -> ResultCursor:
    """Run a query bound by a deadline and return a live cursor."""
    return session.raw_query_with_deadline(sql, *args, timeout=timeout)


def model(session: Session, record_type: Any) -> QueryBuilder:
    """Start a chained query on a record type."""
    return session.model(record_type)


__all__ = [
    'open',
    'connect',
    'Session',
    'Database',
    'DatabaseOptions',
    'ExecResult',
    'ResultCursor',
    'Executor',
    'QueryBuilder',
    'AssignsIdentifier',
    'Schema',
    'Field',
    'SchemaRegistry',
    'describe',
    'extract_values',
    'to_snake_case',
    'create',
    'find',
    'first',
    'update',
    'delete',
    'raw_query',
    'raw_query_with_deadline',
    'model',
    'DatabaseError',
    'ConnectionFailure',
    'QueryError',
    'IntegrityViolationError',
    'StatementTimeout',
    'NotFound',
    'DestinationShapeError',
    'InvalidInputKind',
    'SchemaError',
    'ValidationError',
]
