"""
Field compatibility validation between a declared schema and actual columns.

`validate_fields` reports every problem for one schema/table pair through a
`FailureCollector` and never raises on a mismatch. Compatibility for each
field is decided by the dialect profile's override when it has an opinion,
otherwise by the generic table in `is_type_compatible`.
"""
import logging
from typing import TYPE_CHECKING

from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.failures import CauseAttribute, FailureCollector, FailureKind
from dbrecord.failures import ValidationFailure
from dbrecord.schema import Field, LogicalType, Schema, SchemaType

if TYPE_CHECKING:
    from dbrecord.profile.base import DialectProfile

logger = logging.getLogger(__name__)

__all__ = ['is_type_compatible', 'is_field_compatible', 'validate_fields']

STRING_CODES = frozenset({
    SqlType.VARCHAR, SqlType.CHAR, SqlType.CLOB, SqlType.LONGNVARCHAR,
    SqlType.LONGVARCHAR, SqlType.NCHAR, SqlType.NCLOB, SqlType.NVARCHAR,
    })

_PHYSICAL_COMPATIBILITY: dict[SchemaType, frozenset[int]] = {
    SchemaType.BOOLEAN: frozenset({SqlType.BOOLEAN, SqlType.BIT}),
    SchemaType.INT: frozenset({SqlType.INTEGER, SqlType.SMALLINT, SqlType.TINYINT}),
    SchemaType.LONG: frozenset({SqlType.BIGINT}),
    SchemaType.FLOAT: frozenset({SqlType.REAL, SqlType.FLOAT}),
    SchemaType.DOUBLE: frozenset({SqlType.DOUBLE}),
    SchemaType.BYTES: frozenset({SqlType.BINARY, SqlType.VARBINARY,
                                 SqlType.LONGVARBINARY, SqlType.BLOB}),
    SchemaType.STRING: STRING_CODES,
    }

_LOGICAL_COMPATIBILITY: dict[LogicalType, frozenset[int]] = {
    LogicalType.DATE: frozenset({SqlType.DATE}),
    LogicalType.TIME_MILLIS: frozenset({SqlType.TIME}),
    LogicalType.TIME_MICROS: frozenset({SqlType.TIME}),
    LogicalType.TIMESTAMP_MILLIS: frozenset({SqlType.TIMESTAMP, SqlType.TIMESTAMP_WITH_TIMEZONE}),
    LogicalType.TIMESTAMP_MICROS: frozenset({SqlType.TIMESTAMP, SqlType.TIMESTAMP_WITH_TIMEZONE}),
    LogicalType.DATETIME: frozenset({SqlType.TIMESTAMP}),
    LogicalType.DECIMAL: frozenset({SqlType.NUMERIC, SqlType.DECIMAL}),
    }


def is_type_compatible(schema: Schema, sql_type: int, signed: bool = True) -> bool:
    """Generic compatibility of a universal type with a driver type code.

    Never consults a dialect profile.

    Args:
        schema: Declared field type (nullability ignored)
        sql_type: Driver type code of the actual column
        signed: Whether the actual numeric column is signed

    Returns
        True when values of the column can be represented by the field type
    """
    schema = schema.non_nullable()
    if schema.type is SchemaType.NULL:
        return True

    if schema.logical_type is not None:
        if schema.logical_type is LogicalType.DECIMAL and sql_type == SqlType.BIGINT and not signed:
            return True
        return sql_type in _LOGICAL_COMPATIBILITY.get(schema.logical_type, ())

    if schema.type is SchemaType.LONG and sql_type == SqlType.INTEGER and not signed:
        return True
    return sql_type in _PHYSICAL_COMPATIBILITY.get(schema.type, ())


def is_field_compatible(field: Field, column: Column,
                        profile: 'DialectProfile | None' = None) -> bool:
    """Compatibility of a declared field with an actual column.

    The profile's override answers first, with nullability stripped from the
    field; the generic table decides when the override has no opinion.
    """
    field = Field(field.name, field.schema.non_nullable())
    if profile is not None:
        answer = profile.check_compatibility(field, column)
        if answer is not None:
            return answer
    return is_type_compatible(field.schema, column.type_code, column.signed)


def _column_type_label(column: Column) -> str:
    if column.type_name:
        return column.type_name
    sql_type = column.sql_type
    return sql_type.name if sql_type is not None else str(column.type_code)


def validate_fields(schema: Schema, columns: list[Column],
                    profile: 'DialectProfile | None' = None,
                    collector: FailureCollector | None = None,
                    attribute: CauseAttribute = CauseAttribute.INPUT_SCHEMA_FIELD,
                    check_nullability: bool = False) -> list[ValidationFailure]:
    """Validate every declared field against the actual columns.

    Args:
        schema: Declared RECORD schema
        columns: Actual column metadata of the result set or table
        profile: Dialect profile for compatibility overrides
        collector: Sink receiving the failures; a private one is used if None
        attribute: Cause attribute reported with each failure
        check_nullability: Report nullable fields bound to NOT NULL columns,
            used when validating a sink's input schema

    Returns
        Failures found by this pass, in field order
    """
    if collector is None:
        collector = FailureCollector()
    by_name = {column.name: column for column in columns}
    found = []

    for field in schema.fields:
        column = by_name.get(field.name)
        if column is None:
            found.append(collector.add_failure(
                f"Field '{field.name}' does not exist in the result set.",
                field.name, attribute, FailureKind.MISSING_FIELD,
                f"Remove field '{field.name}' from the schema."))
            continue

        if not is_field_compatible(field, column, profile):
            expected = field.schema.non_nullable().display_name
            actual = _column_type_label(column)
            found.append(collector.add_failure(
                f"Field '{field.name}' was given as type '{expected}' "
                f"but the database column is actually of type '{actual}'.",
                field.name, attribute, FailureKind.TYPE_MISMATCH,
                f"Ensure that the field '{field.name}' has a type compatible with '{actual}'."))
            continue

        if check_nullability and field.schema.nullable and column.nullable is False:
            found.append(collector.add_failure(
                f"Field '{field.name}' was given as nullable "
                'but the database column is not nullable.',
                field.name, attribute, FailureKind.NULLABILITY_MISMATCH,
                f"Ensure that the field '{field.name}' is not nullable."))

    if found:
        logger.debug(f'Schema {schema.name} has {len(found)} validation failure(s)')
    return found
