"""
Row binding: result-set rows onto record instances.

Columns are matched to fields by name through the record's Schema, the same
correspondence used on the write path. The match is computed once per
result set. Columns with no matching field are discarded; fields with no
matching column keep their declared default, or the zero value of their
type when they have none.

Binding a list consumes the cursor. If fetching a row fails, the error is
raised after every row read before it has been appended to the destination,
so the caller sees the exception and a partially filled list.
"""
import dataclasses
import logging
from collections.abc import Sequence
from typing import Any

from dbrecords.exceptions import DestinationShapeError
from dbrecords.schema import Schema

__all__ = ['bind_rows', 'bind_one', 'zero_value']

logger = logging.getLogger(__name__)

_ZERO_VALUES = {int: 0, float: 0.0, str: '', bool: False, bytes: b''}


def zero_value(annotation: Any) -> Any:
    """Return the zero value for a field annotation.

    Optional and unknown types have None as zero value.

    >>> zero_value(int), zero_value(str), zero_value(int | None)
    (0, '', None)
    """
    try:
        return _ZERO_VALUES.get(annotation)
    except TypeError:
        return None


class _RecordFactory:
    """Builds records of one type from positionally bound row values."""

    def __init__(self, schema: Schema, columns: Sequence[str]) -> None:
        self.cls = schema.record_type
        # field name per result column, None where the column is discarded
        self.plan = [f.name if (f := schema.field_for_column(col)) else None
                     for col in columns]
        unmatched = [col for col, name in zip(columns, self.plan) if name is None]
        if unmatched:
            logger.debug(f'Discarding columns without a field on {self.cls.__name__}: {unmatched}')

        annotations = {f.name: f.annotation for f in schema.fields}
        self.dc_fields = dataclasses.fields(self.cls)
        self.zeros = {
            f.name: zero_value(annotations.get(f.name, f.type))
            for f in self.dc_fields
            if f.init and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        }

    def build(self, row: Sequence[Any]) -> Any:
        values = {name: value for name, value in zip(self.plan, row) if name is not None}
        kwargs = {}
        late = {}
        for f in self.dc_fields:
            if f.name in values:
                if f.init:
                    kwargs[f.name] = values[f.name]
                else:
                    late[f.name] = values[f.name]
            elif f.name in self.zeros:
                kwargs[f.name] = self.zeros[f.name]
        record = self.cls(**kwargs)
        for name, value in late.items():
            object.__setattr__(record, name, value)
        return record


def _check_record_destination(into: Any, schema: Schema) -> None:
    cls = schema.record_type
    if isinstance(into, type) or not isinstance(into, cls):
        raise DestinationShapeError(
            f'Destination must be a {cls.__name__} instance, got {type(into).__name__}')
    if into.__dataclass_params__.frozen:
        raise DestinationShapeError(f'Cannot bind into frozen {cls.__name__} instance')


def bind_rows(cursor: Any, schema: Schema, into: list) -> list:
    """Append one record per remaining row of ``cursor`` to ``into``.

    Returns ``into``. Raises DestinationShapeError if ``into`` is not a list.
    """
    if not isinstance(into, list):
        raise DestinationShapeError(f'Destination must be a list, got {type(into).__name__}')

    factory = _RecordFactory(schema, cursor.columns)
    count = 0
    for row in cursor:
        into.append(factory.build(row))
        count += 1
    logger.debug(f'Bound {count} {schema.record_type.__name__} records')
    return into


def bind_one(cursor: Any, schema: Schema, into: Any = None) -> Any:
    """Bind the next row of ``cursor`` to a record.

    Returns a new record, or ``into`` with every schema field overwritten
    when given. Returns None if the cursor has no rows left.
    """
    if into is not None:
        _check_record_destination(into, schema)

    factory = _RecordFactory(schema, cursor.columns)
    row = cursor.fetchone()
    if row is None:
        return None

    record = factory.build(row)
    if into is None:
        return record
    for f in schema.fields:
        setattr(into, f.name, getattr(record, f.name))
    return into
