"""
Session: the record API bound to one Database.

    with dbrecords.open(drivername='sqlite', database='app.db') as session:
        user = User(name='Dybala', age=30)
        session.create(user)
        session.update(User, {'age': 31}, 'WHERE id = ?', user.id)
        adults = session.model(User).where('age >= ?', 18).find()

Record types are described through the session's SchemaRegistry, which
defaults to the process-wide registry.
"""
import logging
from typing import Any, Self

from dbrecords.connection import Database, ExecResult, connect
from dbrecords.cursor import ResultCursor
from dbrecords.executor import Executor
from dbrecords.options import DatabaseOptions
from dbrecords.query import QueryBuilder
from dbrecords.schema import Schema, SchemaRegistry

__all__ = ['Session', 'open']

logger = logging.getLogger(__name__)


class Session:
    """Schema registry, executor and query builders over one Database."""

    def __init__(self, database: Database, registry: SchemaRegistry | None = None) -> None:
        self.database = database
        self.registry = registry if registry is not None else SchemaRegistry.get_instance()
        self.executor = Executor(database)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'<Session {self.database!r}>'

    def describe(self, model: Any) -> Schema:
        """Return the Schema of a record type or instance."""
        return self.registry.describe(model)

    def create(self, record: Any) -> ExecResult:
        """Insert a record; its generated id is written back when possible."""
        return self.executor.create(self.describe(record), record)

    def find(self, model: Any, into: list | None = None) -> list:
        """Return every row of the model's table."""
        return self.executor.find(self.describe(model), into)

    def first(self, model: Any, where: str = '', *args: Any, into: Any = None) -> Any:
        """Return the first row matching a literal WHERE clause.

        Raises NotFound when nothing matches.
        """
        return self.executor.first(self.describe(model), where, *args, into=into)

    def update(self, model: Any, values: dict[str, Any], where: str = '', *args: Any) -> int:
        """Update matching rows; returns the affected row count."""
        return self.executor.update(self.describe(model), values, where, *args)

    def delete(self, model: Any, where: str = '', *args: Any) -> int:
        """Delete matching rows; returns the affected row count."""
        return self.executor.delete(self.describe(model), where, *args)

    def raw_query(self, sql: str, *args: Any) -> ResultCursor:
        return self.executor.raw_query(sql, *args)

    def raw_query_with_deadline(self, sql: str, *args: Any, timeout: float) -> ResultCursor:
        return self.executor.raw_query_with_deadline(sql, *args, timeout=timeout)

    def raw_execute(self, sql: str, *args: Any) -> ExecResult:
        return self.executor.raw_execute(sql, *args)

    def model(self, model: Any) -> QueryBuilder:
        """Start a query on the model's table."""
        return QueryBuilder(self.executor, self.describe(model))

    def ping(self) -> None:
        self.database.ping()

    def close(self) -> None:
        self.database.close()


def open(options: DatabaseOptions | dict[str, Any] | None = None,
         registry: SchemaRegistry | None = None, **kw: Any) -> Session:
    """Connect to a database and return a Session over it."""
    return Session(connect(options, **kw), registry=registry)
