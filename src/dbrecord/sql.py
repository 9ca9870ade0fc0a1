"""
Identifier quoting and DML text generation.

Main entry points:
- `quote_identifier()` - Quote table/column names for a dialect
- `quote_table()` - Quote an optionally schema-qualified table name
- `build_insert_sql()`, `build_update_sql()` - Positional DML for one row
- `build_on_conflict_upsert()`, `build_duplicate_key_upsert()`,
  `build_merge_upsert()` - Dialect UPSERT variants
"""
import logging
from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

__all__ = [
    'quote_identifier',
    'quote_table',
    'make_placeholders',
    'build_insert_sql',
    'build_update_sql',
    'build_on_conflict_upsert',
    'build_duplicate_key_upsert',
    'build_merge_upsert',
]

# dialect -> (open, close)
_QUOTE_STYLES = {
    'mysql': ('`', '`'),
    'memsql': ('`', '`'),
    'sqlserver': ('[', ']'),
    }
_DEFAULT_QUOTE = ('"', '"')


def quote_identifier(identifier: str, dialect: str = 'generic') -> str:
    """Quote a table or column name for the dialect.

    Quoting is idempotent: an identifier already wrapped in the dialect's
    quote characters is returned unchanged.

    >>> quote_identifier('my table')
    '"my table"'
    >>> quote_identifier('"my table"')
    '"my table"'
    >>> quote_identifier('col`x', 'mysql')
    '`col``x`'
    >>> quote_identifier('a]b', 'sqlserver')
    '[a]]b]'
    """
    if not identifier:
        raise ValueError('Identifier must be a non-empty string')
    open_char, close_char = _QUOTE_STYLES.get(dialect, _DEFAULT_QUOTE)
    if _is_quoted(identifier, open_char, close_char):
        return identifier
    return open_char + identifier.replace(close_char, close_char * 2) + close_char


def _is_quoted(identifier: str, open_char: str, close_char: str) -> bool:
    if len(identifier) < 2 or identifier[0] != open_char or identifier[-1] != close_char:
        return False
    inner = identifier[1:-1]
    # every close char inside must be doubled
    return inner.replace(close_char * 2, '').find(close_char) == -1


def quote_table(table: str, schema: str | None, escape: Callable[[str], str]) -> str:
    """Escape a table name, qualified by schema when given.
    """
    if schema:
        return f'{escape(schema)}.{escape(table)}'
    return escape(table)


def make_placeholders(count: int, placeholder: str = '?') -> str:
    """Comma separated positional placeholders.

    >>> make_placeholders(3)
    '?, ?, ?'
    >>> make_placeholders(2, '%s')
    '%s, %s'
    """
    return ', '.join([placeholder] * count)


def build_insert_sql(table: str, columns: Sequence[str], escape: Callable[[str], str],
                     placeholder: str = '?') -> str:
    """INSERT binding every column positionally in the given order.
    """
    column_list = ', '.join(escape(c) for c in columns)
    return f'INSERT INTO {table} ({column_list}) VALUES ({make_placeholders(len(columns), placeholder)})'


def build_update_sql(table: str, columns: Sequence[str], key_fields: Sequence[str],
                     escape: Callable[[str], str], placeholder: str = '?') -> str:
    """UPDATE setting every column, keyed by the key fields.

    Parameters are the column values in order followed by the key values.
    """
    if not key_fields:
        raise ValueError('UPDATE requires at least one key field')
    assignments = ', '.join(f'{escape(c)} = {placeholder}' for c in columns)
    condition = ' AND '.join(f'{escape(k)} = {placeholder}' for k in key_fields)
    return f'UPDATE {table} SET {assignments} WHERE {condition}'


def build_on_conflict_upsert(table: str, columns: Sequence[str], key_fields: Sequence[str],
                             escape: Callable[[str], str], placeholder: str = '?') -> str:
    """INSERT ... ON CONFLICT (keys) DO UPDATE, for PostgreSQL and SQLite.
    """
    insert = build_insert_sql(table, columns, escape, placeholder)
    keys = ', '.join(escape(k) for k in key_fields)
    updates = [c for c in columns if c not in key_fields]
    if not updates:
        return f'{insert} ON CONFLICT ({keys}) DO NOTHING'
    assignments = ', '.join(f'{escape(c)} = excluded.{escape(c)}' for c in updates)
    return f'{insert} ON CONFLICT ({keys}) DO UPDATE SET {assignments}'


def build_duplicate_key_upsert(table: str, columns: Sequence[str], key_fields: Sequence[str],
                               escape: Callable[[str], str], placeholder: str = '%s') -> str:
    """INSERT ... ON DUPLICATE KEY UPDATE, for MySQL and MemSQL.
    """
    insert = build_insert_sql(table, columns, escape, placeholder)
    updates = [c for c in columns if c not in key_fields] or list(key_fields)
    assignments = ', '.join(f'{escape(c)} = VALUES({escape(c)})' for c in updates)
    return f'{insert} ON DUPLICATE KEY UPDATE {assignments}'


def build_merge_upsert(table: str, columns: Sequence[str], key_fields: Sequence[str],
                       escape: Callable[[str], str], placeholder: str = '?',
                       source_suffix: str = '', terminator: str = '') -> str:
    """MERGE from a single-row source, for SQL Server, Oracle and DB2.

    Parameters are the column values in order.
    """
    selected = ', '.join(f'{placeholder} AS {escape(c)}' for c in columns)
    on = ' AND '.join(f't.{escape(k)} = s.{escape(k)}' for k in key_fields)
    updates = [c for c in columns if c not in key_fields]
    column_list = ', '.join(escape(c) for c in columns)
    values = ', '.join(f's.{escape(c)}' for c in columns)
    sql = f'MERGE INTO {table} t USING (SELECT {selected}{source_suffix}) s ON ({on})'
    if updates:
        assignments = ', '.join(f't.{escape(c)} = s.{escape(c)}' for c in updates)
        sql += f' WHEN MATCHED THEN UPDATE SET {assignments}'
    sql += f' WHEN NOT MATCHED THEN INSERT ({column_list}) VALUES ({values})'
    return sql + terminator
