"""
CRUD statements for record types.

The executor compiles INSERT/SELECT/UPDATE/DELETE statements from a Schema
and runs them on a Database. Values are always bound through ``?``
placeholders. Table and column names come from the Schema. The WHERE
clauses passed to `first`, `update` and `delete` are caller text and are
used verbatim: only their placeholder arguments are parameterized, so
untrusted input must never be formatted into the clause itself.

Create, update and delete run under the database's write timeout; reads are
not bounded.
"""
import logging
import types
import typing
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from dbrecords.binder import bind_one, bind_rows, zero_value
from dbrecords.connection import Database, ExecResult
from dbrecords.cursor import ResultCursor
from dbrecords.exceptions import NotFound, QueryError
from dbrecords.schema import Field, Schema, to_snake_case
from dbrecords.sql import build_delete_sql, build_insert_sql, build_select_sql
from dbrecords.sql import build_update_sql
from dbrecords.values import extract_values

__all__ = ['AssignsIdentifier', 'Executor', 'IDENTIFIER_FIELD', 'identifier_field']

logger = logging.getLogger(__name__)

IDENTIFIER_FIELD = 'id'


@runtime_checkable
class AssignsIdentifier(Protocol):
    """Record that accepts the identifier generated when it is inserted."""

    def assign_identifier(self, value: int) -> None:
        ...


def _is_int_annotation(annotation: Any) -> bool:
    if annotation is int:
        return True
    if typing.get_origin(annotation) in {typing.Union, types.UnionType}:
        return int in typing.get_args(annotation)
    return False


def identifier_field(schema: Schema) -> Field | None:
    """Return the identifier field of ``schema`` when it is annotated as an int.

    The field is named by the record type's ``__identifier__`` attribute,
    ``id`` by default.
    """
    name = getattr(schema.record_type, '__identifier__', IDENTIFIER_FIELD)
    for f in schema.fields:
        if f.name == name and _is_int_annotation(f.annotation):
            return f
    return None


def assign_identifier(schema: Schema, record: Any, value: int) -> bool:
    """Report a generated identifier back into ``record``.

    Records implementing ``AssignsIdentifier`` receive the value through
    ``assign_identifier``. Otherwise the identifier field (see
    `identifier_field`) is set. Returns False when neither applies.
    """
    if isinstance(record, AssignsIdentifier):
        record.assign_identifier(value)
        return True

    f = identifier_field(schema)
    if f is not None and not record.__dataclass_params__.frozen:
        setattr(record, f.name, value)
        return True

    logger.debug(f'No assignable identifier on {type(record).__name__}, skipped id {value}')
    return False


class Executor:
    """Runs CRUD statements for schemas on one Database."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def create(self, schema: Schema, record: Any) -> ExecResult:
        """Insert ``record`` into the schema's table.

        Fields whose value is None are left out of the INSERT so the column
        default applies, as is an integer identifier field holding 0. The
        generated identifier, when the database reports one, is written back
        into the record (see `assign_identifier`) unless the record supplied
        its own.
        """
        values = {name: value for name, value in extract_values(record).items()
                  if value is not None}

        ident = identifier_field(schema)
        if ident is not None and values.get(ident.name) == zero_value(int):
            del values[ident.name]
        supplied = ident is not None and ident.name in values

        columns = []
        params = []
        for f in schema.fields:
            if f.name in values:
                columns.append(f.column)
                params.append(values[f.name])

        sql = build_insert_sql(schema.table_name, columns)
        result = self.database.execute(sql, *params, timeout=self.database.write_timeout)

        if supplied:
            logger.debug(f'{type(record).__name__} supplied its own {ident.name}, id not written back')
        elif result.lastrowid:
            assign_identifier(schema, record, result.lastrowid)
        return result

    def find(self, schema: Schema, into: list | None = None) -> list:
        """Return every row of the schema's table as records.

        Records are appended to ``into`` when given, which is returned.
        """
        into = [] if into is None else into
        sql = build_select_sql(schema.table_name)
        with self.database.query(sql) as cursor:
            return bind_rows(cursor, schema, into)

    def first(self, schema: Schema, where: str = '', *args: Any, into: Any = None) -> Any:
        """Return the first row matching ``where`` as a record.

        ``where`` is a literal clause including the WHERE keyword. Raises
        NotFound when no row matches.
        """
        sql = build_select_sql(schema.table_name, where, limit=1)
        with self.database.query(sql, *args) as cursor:
            record = bind_one(cursor, schema, into)
        if record is None:
            raise NotFound(f'No {schema.record_type.__name__} found in {schema.table_name} {where}'.rstrip())
        return record

    def update(self, schema: Schema, values: Mapping[str, Any], where: str = '',
               *args: Any) -> int:
        """Set ``values`` on the rows matching ``where``. Returns rows affected.

        Keys may be field names or column names. Field names resolve through
        the Schema; anything else is converted with `to_snake_case`.
        """
        if not values:
            raise QueryError(f'No values given to update in {schema.table_name}')

        columns = [schema.column_for(key) or to_snake_case(key) for key in values]
        sql = build_update_sql(schema.table_name, columns, where)
        params = [*values.values(), *args]
        result = self.database.execute(sql, *params, timeout=self.database.write_timeout)
        return result.rowcount

    def delete(self, schema: Schema, where: str = '', *args: Any) -> int:
        """Delete the rows matching ``where``. Returns rows affected."""
        sql = build_delete_sql(schema.table_name, where)
        result = self.database.execute(sql, *args, timeout=self.database.write_timeout)
        return result.rowcount

    def raw_query(self, sql: str, *args: Any) -> ResultCursor:
        """Run a query without a deadline and return its live cursor."""
        return self.database.query(sql, *args)

    def raw_query_with_deadline(self, sql: str, *args: Any, timeout: float) -> ResultCursor:
        """Run a query bound by ``timeout`` seconds and return its live cursor.

        The deadline stays armed until the cursor is closed or exhausted.
        """
        return self.database.query(sql, *args, timeout=timeout)

    def raw_execute(self, sql: str, *args: Any) -> ExecResult:
        """Execute a statement without a deadline."""
        return self.database.execute(sql, *args)
