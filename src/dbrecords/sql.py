"""
SQL text assembly and placeholder handling.

Statements are always compiled with ``?`` positional placeholders. The
dialect strategy converts them to the driver's style just before execution:

    compile (?) → standardize_placeholders(sql, dialect) → driver

Identifiers (table and column names) are interpolated as given. They come
from a record Schema; the only caller-supplied text is the WHERE clause.
"""
import re
from collections.abc import Sequence

__all__ = [
    'standardize_placeholders',
    'build_select_sql',
    'build_insert_sql',
    'build_update_sql',
    'build_delete_sql',
]

# String literals and quoted identifiers are copied through untouched
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<percent_s>%s)
    |(?P<qmark>\?)
    |(?P<percent>%)
""", re.VERBOSE)


def _tokens(sql: str):
    """Yield (kind, text) pairs covering the whole statement."""
    pos = 0
    for match in _TOKENIZE.finditer(sql):
        if match.start() > pos:
            yield 'text', sql[pos:match.start()]
        yield match.lastgroup, match.group()
        pos = match.end()
    if pos < len(sql):
        yield 'text', sql[pos:]


def standardize_placeholders(sql: str, dialect: str = 'sqlite') -> str:
    """Convert positional placeholders to the style of the dialect.

    SQLite uses ``?``. PostgreSQL (psycopg) uses ``%s`` and needs literal
    percent signs outside string literals escaped as ``%%``; percent signs
    inside literals are escaped too since psycopg scans the whole text.

    >>> standardize_placeholders('SELECT * FROM users WHERE age >= ?', 'postgresql')
    'SELECT * FROM users WHERE age >= %s'
    >>> standardize_placeholders("SELECT '?' , ? FROM t", 'postgresql')
    "SELECT '?' , %s FROM t"
    >>> standardize_placeholders('SELECT * FROM t WHERE a = %s', 'sqlite')
    'SELECT * FROM t WHERE a = ?'
    """
    if not sql:
        return sql

    if dialect == 'sqlite':
        if '%s' not in sql:
            return sql
        return ''.join('?' if kind == 'percent_s' else text
                       for kind, text in _tokens(sql))

    if dialect == 'postgresql':
        if '?' not in sql and '%' not in sql:
            return sql
        result = []
        for kind, text in _tokens(sql):
            if kind == 'qmark':
                result.append('%s')
            elif kind == 'percent':
                result.append('%%')
            elif kind == 'string':
                result.append(text.replace('%', '%%'))
            else:
                result.append(text)
        return ''.join(result)

    raise ValueError(f'Unknown dialect: {dialect}')


def _join_where(where: str | Sequence[str] | None) -> str:
    if not where:
        return ''
    if isinstance(where, str):
        return f' {where}'
    return ' WHERE ' + ' AND '.join(where)


def build_select_sql(table: str, where: str | Sequence[str] | None = None,
                     limit: int | None = None) -> str:
    """Generate a ``SELECT *`` statement.

    ``where`` is either a literal clause that already carries the ``WHERE``
    keyword, or a sequence of condition fragments to be conjoined with AND.

    >>> build_select_sql('users', ['age >= ?'])
    'SELECT * FROM users WHERE age >= ?'
    >>> build_select_sql('users', 'WHERE id = ?', limit=1)
    'SELECT * FROM users WHERE id = ? LIMIT 1'
    """
    sql = f'SELECT * FROM {table}{_join_where(where)}'
    if limit is not None:
        sql += f' LIMIT {int(limit)}'
    return sql


def build_insert_sql(table: str, columns: Sequence[str]) -> str:
    """Generate an INSERT statement with one placeholder per column.

    >>> build_insert_sql('users', ['name', 'age'])
    'INSERT INTO users (name, age) VALUES (?, ?)'
    >>> build_insert_sql('users', [])
    'INSERT INTO users DEFAULT VALUES'
    """
    if not columns:
        return f'INSERT INTO {table} DEFAULT VALUES'
    placeholders = ', '.join(['?'] * len(columns))
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


def build_update_sql(table: str, columns: Sequence[str], where: str | None = None) -> str:
    """Generate an UPDATE statement assigning each column a placeholder.

    >>> build_update_sql('users', ['age'], 'WHERE id = ?')
    'UPDATE users SET age = ? WHERE id = ?'
    """
    assignments = ', '.join(f'{col} = ?' for col in columns)
    return f'UPDATE {table} SET {assignments}{_join_where(where)}'


def build_delete_sql(table: str, where: str | None = None) -> str:
    """Generate a DELETE statement.

    >>> build_delete_sql('users', 'WHERE id = ?')
    'DELETE FROM users WHERE id = ?'
    """
    return f'DELETE FROM {table}{_join_where(where)}'
