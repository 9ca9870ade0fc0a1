"""
Teradata profile.

Teradata FLOAT and DOUBLE are the same type. Interval types have no
universal counterpart and are exchanged as strings.

Binary values need no override: BLOB, BINARY and VARBINARY are all bound
as plain bytes by the generic write path.
"""
import decimal
import functools

from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.adapters.type_conversion import to_decimal, to_str
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, Schema, SchemaType
from dbrecord.sql import quote_identifier

INTERVAL_TYPE_NAMES = frozenset({
    'INTERVAL YEAR',
    'INTERVAL YEAR TO MONTH',
    'INTERVAL MONTH',
    'INTERVAL DAY',
    'INTERVAL DAY TO HOUR',
    'INTERVAL DAY TO MINUTE',
    'INTERVAL DAY TO SECOND',
    'INTERVAL HOUR',
    'INTERVAL HOUR TO MINUTE',
    'INTERVAL HOUR TO SECOND',
    'INTERVAL MINUTE',
    'INTERVAL MINUTE TO SECOND',
    'INTERVAL SECOND',
    })


def _is_interval(column: Column) -> bool:
    return (column.type_name or '').upper() in INTERVAL_TYPE_NAMES


def teradata_schema(column: Column) -> Schema | None:
    if _is_interval(column):
        return Schema.of(SchemaType.STRING)
    if column.type_code == SqlType.FLOAT:
        return Schema.of(SchemaType.DOUBLE)
    return None


def teradata_compatibility(field: Field, column: Column) -> bool | None:
    if field.schema.is_type(SchemaType.DOUBLE) and column.type_code == SqlType.FLOAT:
        return True
    if field.schema.is_type(SchemaType.STRING) and _is_interval(column):
        return True
    return None


def teradata_read(value, field: Field, column: Column):
    if value is None:
        return UNHANDLED
    schema = field.schema.non_nullable()
    if _is_interval(column) and schema.is_type(SchemaType.STRING):
        return to_str(value)
    if column.type_code == SqlType.NUMERIC and schema.is_decimal:
        # rounded to the column scale first, then must fit the field exactly
        rounded = to_decimal(value, None, column.scale or 0, rounding=decimal.ROUND_HALF_EVEN)
        return to_decimal(rounded, schema.precision, schema.scale)
    return UNHANDLED


TERADATA = register_profile(
    DialectProfile(
        'teradata',
        schema_override=teradata_schema,
        compatibility_override=teradata_compatibility,
        read_override=teradata_read,
        escape=functools.partial(quote_identifier, dialect='teradata'),
        ))
