"""
Type catalog: resolution of driver column metadata to universal types.

Resolution order for a column:

1. The dialect profile's schema override, which may claim a type code or
   type name combination before the generic table sees it
2. The generic table keyed by standard type code
3. Otherwise UnsupportedTypeError, which is fatal since no schema can be
   produced for the result

The generic table is data: one builder per type code. Only the builders
that depend on column precision or signed-ness carry any logic.
"""
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.exceptions import UnsupportedTypeError
from dbrecord.schema import Field, LogicalType, Schema, SchemaType

if TYPE_CHECKING:
    from dbrecord.profile.base import DialectProfile

logger = logging.getLogger(__name__)

__all__ = ['infer_type', 'infer_schema', 'DEFAULT_RECORD_NAME']

DEFAULT_RECORD_NAME = 'etlSchemaBody'

# Fractional-second precision at or below which millisecond types suffice
MILLIS_PRECISION = 3


def _simple(schema: Schema) -> Callable[[Column], Schema]:
    return lambda column: schema


def _integer(column: Column) -> Schema:
    # unsigned 32-bit values overflow INT
    return Schema.of(SchemaType.INT if column.signed else SchemaType.LONG)


def _bigint(column: Column) -> Schema:
    if column.signed:
        return Schema.of(SchemaType.LONG)
    # unsigned 64-bit values overflow LONG
    return Schema.decimal_of(column.precision or 20, 0)


def _numeric(column: Column) -> Schema:
    if not column.precision:
        raise UnsupportedTypeError(column.type_code, column.type_name or 'NUMERIC without precision',
                                   column.name)
    return Schema.decimal_of(column.precision, column.scale or 0)


def _is_millis(column: Column) -> bool:
    return column.precision is not None and 0 < column.precision <= MILLIS_PRECISION


def _time(column: Column) -> Schema:
    return Schema.of_logical(LogicalType.TIME_MILLIS if _is_millis(column) else LogicalType.TIME_MICROS)


def _timestamp(column: Column) -> Schema:
    return Schema.of_logical(LogicalType.TIMESTAMP_MILLIS if _is_millis(column)
                             else LogicalType.TIMESTAMP_MICROS)


TYPE_BUILDERS: dict[int, Callable[[Column], Schema]] = {
    SqlType.NULL: _simple(Schema.of(SchemaType.NULL)),
    SqlType.ROWID: _simple(Schema.of(SchemaType.STRING)),
    SqlType.BOOLEAN: _simple(Schema.of(SchemaType.BOOLEAN)),
    SqlType.BIT: _simple(Schema.of(SchemaType.BOOLEAN)),
    SqlType.TINYINT: _simple(Schema.of(SchemaType.INT)),
    SqlType.SMALLINT: _simple(Schema.of(SchemaType.INT)),
    SqlType.INTEGER: _integer,
    SqlType.BIGINT: _bigint,
    SqlType.REAL: _simple(Schema.of(SchemaType.FLOAT)),
    SqlType.FLOAT: _simple(Schema.of(SchemaType.FLOAT)),
    SqlType.DOUBLE: _simple(Schema.of(SchemaType.DOUBLE)),
    SqlType.NUMERIC: _numeric,
    SqlType.DECIMAL: _numeric,
    SqlType.DATE: _simple(Schema.of_logical(LogicalType.DATE)),
    SqlType.TIME: _time,
    SqlType.TIME_WITH_TIMEZONE: _simple(Schema.of(SchemaType.STRING)),
    SqlType.TIMESTAMP: _timestamp,
    SqlType.TIMESTAMP_WITH_TIMEZONE: _timestamp,
    }
for _code in (SqlType.CHAR, SqlType.VARCHAR, SqlType.LONGVARCHAR, SqlType.NCHAR,
              SqlType.NVARCHAR, SqlType.LONGNVARCHAR, SqlType.CLOB, SqlType.NCLOB):
    TYPE_BUILDERS[_code] = _simple(Schema.of(SchemaType.STRING))
for _code in (SqlType.BINARY, SqlType.VARBINARY, SqlType.LONGVARBINARY, SqlType.BLOB):
    TYPE_BUILDERS[_code] = _simple(Schema.of(SchemaType.BYTES))


def infer_type(column: Column, profile: 'DialectProfile | None' = None) -> Schema:
    """Resolve the universal type of one column, ignoring nullability.

    Args:
        column: Column metadata
        profile: Dialect profile whose schema override is consulted first

    Returns
        Non-nullable Schema for the column

    Raises
        UnsupportedTypeError: when neither the profile nor the generic table
            maps the column
    """
    if profile is not None:
        schema = profile.infer_override(column)
        if schema is not None:
            return schema.non_nullable()

    builder = TYPE_BUILDERS.get(column.type_code)
    if builder is None:
        raise UnsupportedTypeError(column.type_code, column.type_name, column.name)
    return builder(column)


def infer_schema(columns: list[Column], profile: 'DialectProfile | None' = None,
                 name: str = DEFAULT_RECORD_NAME) -> Schema:
    """Build the record schema for a result set or table.

    Every field is nullable unless its column metadata asserts NOT NULL.
    """
    fields = []
    for column in columns:
        schema = infer_type(column, profile)
        if column.nullable is not False:
            schema = schema.to_nullable()
        fields.append(Field(column.name, schema))
    logger.debug(f'Inferred schema {name} with {len(fields)} fields')
    return Schema.record_of(name, fields)
