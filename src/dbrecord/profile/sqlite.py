"""
SQLite profile.

SQLite is dynamically typed: result set columns carry no type at all and
declared column types only suggest a storage affinity. Declared type names
map by affinity (https://www.sqlite.org/datatype3.html#determination_of_column_affinity),
and untyped columns are read by whatever the declared field schema asks for.
Untyped columns infer as STRING.
"""
import functools

from dbrecord.adapters.column_info import NUMERIC_CODES, Column, SqlType
from dbrecord.profile.base import DialectProfile, register_profile
from dbrecord.schema import Field, Schema, SchemaType
from dbrecord.sql import build_on_conflict_upsert, quote_identifier


def type_affinity(type_name: str) -> SchemaType:
    """Universal type for SQLite's affinity rules on a declared type name.

    >>> type_affinity('BIGINT')
    <SchemaType.LONG: 'long'>
    >>> type_affinity('VARCHAR(20)')
    <SchemaType.STRING: 'string'>
    >>> type_affinity('')
    <SchemaType.STRING: 'string'>
    """
    name = (type_name or '').upper()
    if 'INT' in name:
        return SchemaType.LONG
    if any(token in name for token in ('CHAR', 'CLOB', 'TEXT')):
        return SchemaType.STRING
    if 'BLOB' in name:
        return SchemaType.BYTES
    if any(token in name for token in ('REAL', 'FLOA', 'DOUB')):
        return SchemaType.DOUBLE
    if not name:
        return SchemaType.STRING
    # NUMERIC affinity
    return SchemaType.DOUBLE


def _is_untyped(column: Column) -> bool:
    return column.type_code in {SqlType.OTHER, SqlType.NULL}


def sqlite_schema(column: Column) -> Schema | None:
    if _is_untyped(column):
        return Schema.of(type_affinity(column.type_name))
    if column.type_code in NUMERIC_CODES and not column.precision:
        return Schema.of(SchemaType.DOUBLE)
    return None


def sqlite_compatibility(field: Field, column: Column) -> bool | None:
    if _is_untyped(column):
        return True
    if column.type_code in NUMERIC_CODES and not column.precision:
        return field.schema.is_type(SchemaType.DOUBLE) or field.schema.is_decimal
    return None


SQLITE = register_profile(
    DialectProfile(
        'sqlite',
        schema_override=sqlite_schema,
        compatibility_override=sqlite_compatibility,
        escape=functools.partial(quote_identifier, dialect='sqlite'),
        upsert_builder=build_on_conflict_upsert,
        ))
