"""
Chainable SELECT builder bound to one record type.

    users = session.model(User).where('age >= ?', 18).where('name LIKE ?', 'A%').find()

Each `where` fragment is caller SQL conjoined with AND, in call order, and
its parameters are appended in the same order. The builder does not check
that placeholders and parameters line up; a mismatch fails in the driver.
A builder runs once: `find`, `first` and `create` are terminal.
"""
import logging
from typing import Any, Self

from dbrecords.binder import bind_one, bind_rows
from dbrecords.connection import ExecResult
from dbrecords.exceptions import NotFound, QueryError
from dbrecords.executor import Executor
from dbrecords.schema import Schema
from dbrecords.sql import build_select_sql

__all__ = ['QueryBuilder']

logger = logging.getLogger(__name__)


class QueryBuilder:
    """Accumulates WHERE fragments and parameters for one query."""

    def __init__(self, executor: Executor, schema: Schema) -> None:
        self.executor = executor
        self.schema = schema
        self.conditions: list[str] = []
        self.params: list[Any] = []
        self.executed = False

    def __repr__(self) -> str:
        return f'<QueryBuilder {self.sql()!r} {self.params!r}>'

    def where(self, condition: str, *params: Any) -> Self:
        """Add a condition fragment and its parameters."""
        self._check_fresh()
        self.conditions.append(condition)
        self.params.extend(params)
        return self

    def sql(self, limit: int | None = None) -> str:
        """Compile the SELECT statement."""
        return build_select_sql(self.schema.table_name, self.conditions, limit=limit)

    def find(self, into: list | None = None) -> list:
        """Run the query and return every matching row as a record."""
        self._start()
        into = [] if into is None else into
        with self.executor.database.query(self.sql(), *self.params) as cursor:
            return bind_rows(cursor, self.schema, into)

    def first(self, into: Any = None) -> Any:
        """Run the query with LIMIT 1 and return the matching record.

        Raises NotFound when no row matches.
        """
        self._start()
        with self.executor.database.query(self.sql(limit=1), *self.params) as cursor:
            record = bind_one(cursor, self.schema, into)
        if record is None:
            raise NotFound(f'No {self.schema.record_type.__name__} found in {self.schema.table_name}')
        return record

    def create(self, record: Any) -> ExecResult:
        """Insert ``record`` into this builder's table."""
        self._start()
        return self.executor.create(self.schema, record)

    def _check_fresh(self) -> None:
        if self.executed:
            raise QueryError('Query builder has already been executed')

    def _start(self) -> None:
        self._check_fresh()
        self.executed = True
        logger.debug(f'Running {self.schema.table_name} query with {len(self.conditions)} conditions')
