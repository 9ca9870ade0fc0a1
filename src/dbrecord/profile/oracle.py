"""
Oracle profile.

Oracle reports several vendor type codes outside the standard set and
builds every numeric type on NUMBER, so compatibility of INT, LONG and
DOUBLE fields with NUMBER columns is decided by precision and type name.
DATE columns carry a time part and are reported as TIMESTAMP.
"""
import decimal
import functools
import logging

from dbrecord.adapters.column_info import NUMERIC_CODES, Column, SqlType
from dbrecord.adapters.type_conversion import to_decimal, to_float, to_str, to_timestamp
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, LogicalType, Schema, SchemaType
from dbrecord.sql import build_merge_upsert, quote_identifier

logger = logging.getLogger(__name__)

TIMESTAMP_TZ = -101
TIMESTAMP_LTZ = -102
BINARY_FLOAT = 100
BINARY_DOUBLE = 101
BFILE = -13
LONG = -1
LONG_RAW = -4
INTERVAL_YM = -103
INTERVAL_DS = -104

ORACLE_TYPES = frozenset({
    TIMESTAMP_TZ, TIMESTAMP_LTZ, BINARY_FLOAT, BINARY_DOUBLE, BFILE,
    LONG, LONG_RAW, INTERVAL_YM, INTERVAL_DS,
    })

# Precision needed to hold the largest 32-bit and 64-bit integers
INT_PRECISION = 10
LONG_PRECISION = 19

DEFAULT_NUMBER_PRECISION = 38

_VENDOR_SCHEMAS = {
    TIMESTAMP_TZ: Schema.of(SchemaType.STRING),
    TIMESTAMP_LTZ: Schema.of_logical(LogicalType.TIMESTAMP_MICROS),
    BINARY_FLOAT: Schema.of(SchemaType.FLOAT),
    BINARY_DOUBLE: Schema.of(SchemaType.DOUBLE),
    BFILE: Schema.of(SchemaType.BYTES),
    INTERVAL_YM: Schema.of(SchemaType.STRING),
    INTERVAL_DS: Schema.of(SchemaType.STRING),
    }


def _is_float_number(column: Column) -> bool:
    return column.type_code in NUMERIC_CODES and column.has_type_name('FLOAT')


def oracle_schema(column: Column) -> Schema | None:
    schema = _VENDOR_SCHEMAS.get(column.type_code)
    if schema is not None:
        return schema
    if _is_float_number(column):
        return Schema.of(SchemaType.DOUBLE)
    if column.type_code in NUMERIC_CODES and not column.precision:
        # NUMBER without precision can hold any value, scale unknown
        logger.warning(f"Field '{column.name}' is a NUMBER without precision and scale, "
                       f'mapping to decimal({DEFAULT_NUMBER_PRECISION},0); values will be rounded')
        return Schema.decimal_of(DEFAULT_NUMBER_PRECISION, 0)
    return None


def oracle_compatibility(field: Field, column: Column) -> bool | None:
    schema = field.schema
    code = column.type_code
    numeric = code in NUMERIC_CODES
    scale = column.scale or 0

    match schema.logical_type:
        case LogicalType.DATE:
            return code in {SqlType.TIMESTAMP, SqlType.DATE}
        case LogicalType.TIMESTAMP_MICROS:
            return True if code == TIMESTAMP_LTZ else None
        case None:
            pass
        case _:
            return None

    match schema.type:
        case SchemaType.FLOAT if code == BINARY_FLOAT:
            return True
        case SchemaType.BYTES if code in {BFILE, LONG_RAW}:
            return True
        case SchemaType.STRING if code in {LONG, TIMESTAMP_TZ, INTERVAL_DS, INTERVAL_YM, SqlType.ROWID}:
            return True
        case SchemaType.INT if numeric:
            return (column.precision or 0) >= INT_PRECISION and scale == 0
        case SchemaType.LONG if numeric:
            return (column.precision or 0) >= LONG_PRECISION and scale == 0
        case SchemaType.DOUBLE if numeric:
            return _is_float_number(column)
        case SchemaType.DOUBLE if code == BINARY_DOUBLE:
            return True
    return None


def oracle_read(value, field: Field, column: Column):
    schema = field.schema.non_nullable()
    code = column.type_code

    if code in {INTERVAL_YM, INTERVAL_DS} or (code == LONG and schema.is_type(SchemaType.STRING)):
        return None if value is None else to_str(value)
    if code == TIMESTAMP_TZ:
        if value is None:
            return None
        if schema.is_type(SchemaType.STRING):
            return to_str(value)
        return to_timestamp(value)
    if code in {BINARY_FLOAT, BINARY_DOUBLE}:
        return None if value is None else to_float(value)
    if code in NUMERIC_CODES:
        if value is None:
            return None
        if schema.is_decimal:
            return to_decimal(value, schema.precision, schema.scale, rounding=decimal.ROUND_HALF_EVEN)
        if not column.precision and schema.is_type(SchemaType.STRING):
            return to_str(to_decimal(value))
    return UNHANDLED


def oracle_write(statement, index: int, field: Field, column: Column, value):
    if value is None:
        return UNHANDLED
    schema = field.schema.non_nullable()
    if column.type_code == TIMESTAMP_TZ:
        # bound aware so the driver keeps the offset
        statement.bind(index, value if schema.is_type(SchemaType.STRING) else to_timestamp(value))
        return None
    return UNHANDLED


ORACLE = register_profile(
    DialectProfile(
        'oracle',
        schema_override=oracle_schema,
        compatibility_override=oracle_compatibility,
        read_override=oracle_read,
        write_override=oracle_write,
        escape=functools.partial(quote_identifier, dialect='oracle'),
        upsert_builder=functools.partial(build_merge_upsert, source_suffix=' FROM DUAL'),
        placeholder=':v',
        ))
