"""
Value extraction from record instances, for write paths.
"""
import dataclasses
from typing import Any

from dbrecords.exceptions import InvalidInputKind
from dbrecords.schema import is_persisted

__all__ = ['extract_values']


def extract_values(record: Any) -> dict[str, Any]:
    """Return the current value of every persisted field, keyed by field name.

    Keys are logical (field) names, not column names; the Schema translates
    them and fixes the column order.

    >>> from dataclasses import dataclass
    >>> @dataclass
    ... class User:
    ...     name: str
    ...     age: int = 0
    >>> extract_values(User('Totti', 40))
    {'name': 'Totti', 'age': 40}
    """
    if isinstance(record, type) or not dataclasses.is_dataclass(record):
        raise InvalidInputKind(f'Expected a dataclass record instance, got {type(record).__name__}')
    return {f.name: getattr(record, f.name)
            for f in dataclasses.fields(record)
            if is_persisted(f)}
