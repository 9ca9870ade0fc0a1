"""
PostgreSQL profile, shared by Aurora PostgreSQL and Cloud SQL for PostgreSQL.

Types without a universal counterpart (json, uuid, interval, arrays, xml,
bit strings, timetz, money) are exchanged as strings. On write the string is
bound untyped and the server coerces it to the column type.
"""
import decimal
import functools
import json
import logging

from dbrecord.adapters.column_info import NUMERIC_CODES, Column, SqlType
from dbrecord.adapters.type_conversion import to_decimal, to_str
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, LogicalType, Schema, SchemaType
from dbrecord.sql import build_on_conflict_upsert, quote_identifier

logger = logging.getLogger(__name__)

STRING_MAPPED_TYPES = frozenset({SqlType.OTHER, SqlType.ARRAY, SqlType.SQLXML})
STRING_MAPPED_TYPE_NAMES = frozenset({'bit', 'timetz', 'money'})


def is_string_mapped(column: Column) -> bool:
    return (column.type_code in STRING_MAPPED_TYPES
            or (column.type_name or '').lower() in STRING_MAPPED_TYPE_NAMES)


def _is_unbounded_numeric(column: Column) -> bool:
    return column.type_code in NUMERIC_CODES and not column.precision


def _text(value) -> str:
    if isinstance(value, dict | list):
        return json.dumps(value)
    return to_str(value)


def postgres_schema(column: Column) -> Schema | None:
    if is_string_mapped(column):
        return Schema.of(SchemaType.STRING)
    if _is_unbounded_numeric(column):
        logger.warning(f"Field '{column.name}' is a {column.type_name or 'numeric'} without precision "
                       'and scale, mapping to string to avoid precision loss')
        return Schema.of(SchemaType.STRING)
    return None


def postgres_compatibility(field: Field, column: Column) -> bool | None:
    schema = field.schema
    if is_string_mapped(column):
        return schema.is_type(SchemaType.STRING)
    if schema.is_type(SchemaType.STRING) and column.type_code in NUMERIC_CODES:
        return True
    if schema.logical_type is LogicalType.DATETIME and column.type_code == SqlType.TIMESTAMP:
        return column.has_type_name('timestamp')
    return None


def postgres_read(value, field: Field, column: Column):
    schema = field.schema.non_nullable()
    if is_string_mapped(column) and schema.is_type(SchemaType.STRING):
        return None if value is None else _text(value)
    if column.type_code in NUMERIC_CODES:
        if value is None:
            return None
        if schema.is_type(SchemaType.STRING):
            return to_str(to_decimal(value))
        if schema.is_decimal:
            return to_decimal(value, schema.precision, schema.scale, rounding=decimal.ROUND_HALF_EVEN)
    return UNHANDLED


def postgres_write(statement, index: int, field: Field, column: Column, value):
    if value is None:
        return UNHANDLED
    schema = field.schema.non_nullable()
    if is_string_mapped(column) and schema.is_type(SchemaType.STRING):
        statement.bind(index, value)
        return None
    if column.type_code in NUMERIC_CODES and schema.is_type(SchemaType.STRING):
        statement.bind(index, to_decimal(value))
        return None
    return UNHANDLED


POSTGRES = register_profile(
    DialectProfile(
        'postgresql',
        schema_override=postgres_schema,
        compatibility_override=postgres_compatibility,
        read_override=postgres_read,
        write_override=postgres_write,
        escape=functools.partial(quote_identifier, dialect='postgresql'),
        upsert_builder=build_on_conflict_upsert,
        placeholder='%s',
        ),
    'postgres', 'aurora_postgresql', 'cloudsql_postgresql')
