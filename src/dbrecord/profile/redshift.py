"""
Amazon Redshift profile.

The Redshift driver reports some integer columns as unsigned, so `int` and
`bigint` are claimed by type name before the generic table widens them.
"""
import decimal
import functools
import logging

from dbrecord.adapters.column_info import NUMERIC_CODES, Column, SqlType
from dbrecord.adapters.type_conversion import to_decimal, to_local_datetime, to_str
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, LogicalType, Schema, SchemaType
from dbrecord.sql import quote_identifier

logger = logging.getLogger(__name__)

STRING_MAPPED_TYPE_NAMES = frozenset({'timetz', 'money'})


def _is_string_mapped(column: Column) -> bool:
    return (column.type_name or '').lower() in STRING_MAPPED_TYPE_NAMES


def _is_local_timestamp(column: Column) -> bool:
    return column.type_code == SqlType.TIMESTAMP and column.has_type_name('timestamp')


def redshift_schema(column: Column) -> Schema | None:
    if _is_string_mapped(column):
        return Schema.of(SchemaType.STRING)
    if column.has_type_name('int', 'int4', 'integer'):
        return Schema.of(SchemaType.INT)
    if column.has_type_name('bigint', 'int8'):
        return Schema.of(SchemaType.LONG)
    if column.type_code in NUMERIC_CODES and not column.precision:
        logger.warning(f"Field '{column.name}' is a numeric without precision and scale, "
                       'mapping to string to avoid precision loss')
        return Schema.of(SchemaType.STRING)
    if _is_local_timestamp(column):
        return Schema.of_logical(LogicalType.DATETIME)
    return None


def redshift_compatibility(field: Field, column: Column) -> bool | None:
    schema = field.schema
    if _is_string_mapped(column):
        return schema.is_type(SchemaType.STRING)
    if column.has_type_name('int', 'int4', 'integer') and schema.is_type(SchemaType.INT):
        return True
    if column.has_type_name('bigint', 'int8') and schema.is_type(SchemaType.LONG):
        return True
    if column.type_code in NUMERIC_CODES and schema.is_type(SchemaType.STRING):
        return not column.precision
    if schema.logical_type is LogicalType.DATETIME:
        return _is_local_timestamp(column)
    return None


def redshift_read(value, field: Field, column: Column):
    schema = field.schema.non_nullable()
    if _is_string_mapped(column) and schema.is_type(SchemaType.STRING):
        return None if value is None else to_str(value)
    if column.type_code in NUMERIC_CODES:
        if value is None:
            return None
        if schema.is_type(SchemaType.STRING):
            return to_str(to_decimal(value))
        if schema.is_decimal:
            return to_decimal(value, schema.precision, schema.scale, rounding=decimal.ROUND_HALF_EVEN)
    if schema.logical_type is LogicalType.DATETIME and _is_local_timestamp(column):
        return None if value is None else to_local_datetime(value)
    return UNHANDLED


REDSHIFT = register_profile(
    DialectProfile(
        'redshift',
        schema_override=redshift_schema,
        compatibility_override=redshift_compatibility,
        read_override=redshift_read,
        escape=functools.partial(quote_identifier, dialect='redshift'),
        placeholder='%s',
        ))
