"""
SQL Server profile.

DATETIMEOFFSET, GEOMETRY, GEOGRAPHY and SQL_VARIANT are reported with vendor
type codes. Spatial values are exchanged as bytes or Well Known Text.
"""
import datetime
import functools
import logging

import dateutil.parser
from dbrecord.adapters.column_info import NUMERIC_CODES, Column, SqlType
from dbrecord.adapters.type_conversion import to_str, to_timestamp
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, LogicalType, Schema, SchemaType
from dbrecord.sql import build_merge_upsert, quote_identifier

logger = logging.getLogger(__name__)

DATETIME_OFFSET = -155
SQL_VARIANT = -156
GEOMETRY = -157
GEOGRAPHY = -158

SPATIAL_TYPES = frozenset({GEOMETRY, GEOGRAPHY})


def sqlserver_schema(column: Column) -> Schema | None:
    if column.type_code in {DATETIME_OFFSET, SQL_VARIANT}:
        return Schema.of(SchemaType.STRING)
    if column.type_code in SPATIAL_TYPES:
        return Schema.of(SchemaType.BYTES)
    return None


def sqlserver_compatibility(field: Field, column: Column) -> bool | None:
    schema = field.schema
    code = column.type_code
    if schema.logical_type is not None:
        if code == DATETIME_OFFSET and (schema.logical_type is LogicalType.DATETIME or schema.is_timestamp):
            return True
        return None
    if schema.is_type(SchemaType.BYTES) and code in SPATIAL_TYPES:
        return True
    if schema.is_type(SchemaType.STRING):
        # spatial values may be given as Well Known Text
        if code in {DATETIME_OFFSET, SQL_VARIANT, SqlType.ROWID} or code in SPATIAL_TYPES:
            return True
        if code in NUMERIC_CODES:
            return True
    return None


def _offset_datetime(value) -> datetime.datetime:
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        # drivers without an output converter return text like
        # "2020-01-01 10:00:00.1234567 +02:00"
        return dateutil.parser.parse(value)
    if not isinstance(value, datetime.datetime):
        raise TypeError(f'Cannot read {type(value).__name__} as datetimeoffset')
    return value


def sqlserver_read(value, field: Field, column: Column):
    if column.type_code != DATETIME_OFFSET:
        return UNHANDLED
    if value is None:
        return None
    schema = field.schema.non_nullable()
    value = _offset_datetime(value)
    if schema.is_timestamp:
        return to_timestamp(value)
    if schema.logical_type is LogicalType.DATETIME:
        # wall clock time at the stored offset
        return value.replace(tzinfo=None)
    return to_str(value)


def sqlserver_write(statement, index: int, field: Field, column: Column, value):
    code = column.type_code
    if code in SPATIAL_TYPES:
        if value is None:
            # a typed NULL is rejected for spatial columns
            statement.bind(index, 'Null')
            return None
        if isinstance(value, str):
            statement.bind(index, value)
            return None
        return UNHANDLED
    if code == SqlType.TIME and value is not None and field.schema.non_nullable().is_time:
        # sent as text to keep sub-second digits
        statement.bind(index, value.isoformat())
        return None
    return UNHANDLED


SQLSERVER = register_profile(
    DialectProfile(
        'sqlserver',
        schema_override=sqlserver_schema,
        compatibility_override=sqlserver_compatibility,
        read_override=sqlserver_read,
        write_override=sqlserver_write,
        escape=functools.partial(quote_identifier, dialect='sqlserver'),
        upsert_builder=functools.partial(build_merge_upsert, terminator=';'),
        placeholder='?',
        ),
    'mssql')
