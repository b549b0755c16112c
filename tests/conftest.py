import pytest
from dbrecords.schema import SchemaRegistry


@pytest.fixture
def registry():
    """Fresh schema registry so tests never share cached schemas."""
    return SchemaRegistry()


pytest_plugins = [
    'tests.fixtures.records',
    'tests.fixtures.fakes',
    'tests.fixtures.sqlite',
    'tests.fixtures.postgres',
]
