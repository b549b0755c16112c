"""
Schema introspection for record types.

A record type is a dataclass. Its table name and column names are derived
from the class and field names, unless overridden:

    @dataclass
    class User:
        id: int | None = None
        name: str = ''
        user_name: str = field(default='', metadata={'db': 'login'})
        cache: dict = field(default_factory=dict, metadata={'db': '-'})

The derived ``Schema`` is computed once per type and cached by the
``SchemaRegistry`` for the lifetime of the registry.
"""
import dataclasses
import logging
import operator
import re
import threading
import typing
from dataclasses import dataclass
from typing import Any, Self

import cachetools
from dbrecords.exceptions import InvalidInputKind, SchemaError

__all__ = [
    'Field',
    'Schema',
    'SchemaRegistry',
    'describe',
    'is_persisted',
    'resolve_record_type',
    'table_name_for',
    'to_snake_case',
]

logger = logging.getLogger(__name__)

# Field metadata key holding the column name, or EXCLUDE
COLUMN_KEY = 'db'
EXCLUDE = '-'

_WORD_BOUNDARY = re.compile(r'(.)([A-Z][a-z]+)')
_CASE_BOUNDARY = re.compile(r'([a-z0-9])([A-Z])')


def to_snake_case(name: str) -> str:
    """Convert CamelCase or mixedCase to snake_case.

    >>> to_snake_case('UserName')
    'user_name'
    >>> to_snake_case('HTTPServer')
    'http_server'
    >>> to_snake_case('ID')
    'id'
    >>> to_snake_case('user_name')
    'user_name'
    """
    name = _WORD_BOUNDARY.sub(r'\1_\2', name)
    return _CASE_BOUNDARY.sub(r'\1_\2', name).lower()


def table_name_for(cls: type) -> str:
    """Return the table name for a record type.

    Pluralized snake_case class name unless the class sets ``__tablename__``.

    >>> class UserProfile: pass
    >>> table_name_for(UserProfile)
    'user_profiles'
    """
    override = getattr(cls, '__tablename__', None)
    if override:
        return override
    return to_snake_case(cls.__name__) + 's'


def is_persisted(f: dataclasses.Field) -> bool:
    """Check whether a dataclass field maps to a column."""
    return not f.name.startswith('_') and f.metadata.get(COLUMN_KEY) != EXCLUDE


def resolve_record_type(model: Any) -> type:
    """Return the dataclass type of a record type or record instance.

    Raises InvalidInputKind for anything that is not a dataclass.
    """
    cls = model if isinstance(model, type) else type(model)
    if not dataclasses.is_dataclass(cls):
        raise InvalidInputKind(f'Expected a dataclass record type, got {cls.__name__}')
    return cls


@dataclass(frozen=True)
class Field:
    """One field-to-column correspondence."""
    name: str
    column: str
    annotation: Any = dataclasses.field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Schema:
    """Table name and ordered field/column correspondence of a record type."""
    table_name: str
    fields: tuple[Field, ...]
    record_type: type = dataclasses.field(compare=False, repr=False)

    @property
    def columns(self) -> list[str]:
        """Column names in field declaration order."""
        return [f.column for f in self.fields]

    def field_for_column(self, column: str) -> Field | None:
        """Return the field bound to ``column``, None if no field is."""
        for f in self.fields:
            if f.column == column:
                return f
        return None

    def column_for(self, name: str) -> str | None:
        """Return the column of the field with logical name ``name``."""
        for f in self.fields:
            if f.name == name:
                return f.column
        return None


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError) as err:
        logger.debug(f'Could not resolve type hints for {cls.__name__}: {err}')
        return {}


def _derive_schema(cls: type) -> Schema:
    hints = _type_hints(cls)
    fields = []
    seen: dict[str, str] = {}
    for f in dataclasses.fields(cls):
        if not is_persisted(f):
            continue
        column = f.metadata.get(COLUMN_KEY) or to_snake_case(f.name)
        if column in seen:
            raise SchemaError(
                f'{cls.__name__}: fields {seen[column]!r} and {f.name!r} both map to column {column!r}')
        seen[column] = f.name
        fields.append(Field(name=f.name, column=column, annotation=hints.get(f.name, f.type)))

    schema = Schema(table_name=table_name_for(cls), fields=tuple(fields), record_type=cls)
    logger.debug(f'Derived schema for {cls.__name__}: table {schema.table_name}, columns {schema.columns}')
    return schema


class SchemaRegistry:
    """Cache of derived schemas keyed by record type.

    Lookups and publication are serialized by a lock; derivation itself runs
    outside it, so two threads describing a new type at the same time may
    both derive it. The first published schema is the one every caller gets.
    Entries are never evicted.
    """

    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self) -> None:
        self._schemas: dict[type, Schema] = {}
        self._lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> Self:
        """Get the process-wide default registry."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def __contains__(self, model: Any) -> bool:
        cls = model if isinstance(model, type) else type(model)
        with self._lock:
            return cachetools.keys.methodkey(self, cls) in self._schemas

    def __len__(self) -> int:
        with self._lock:
            return len(self._schemas)

    def describe(self, model: Any) -> Schema:
        """Return the Schema for a record type or record instance."""
        return self._describe(resolve_record_type(model))

    @cachetools.cachedmethod(operator.attrgetter('_schemas'),
                             lock=operator.attrgetter('_lock'))
    def _describe(self, cls: type) -> Schema:
        return _derive_schema(cls)


def describe(model: Any) -> Schema:
    """Describe a record type using the default registry."""
    return SchemaRegistry.get_instance().describe(model)
