"""
Cross-dialect type mapping and record marshalling for relational databases.

Driver column metadata is resolved to a universal type system, declared
record schemas are validated against actual columns, and rows are moved
between driver values and typed records in both directions. Database
specific behavior lives in dialect profiles of override hooks.

The module functions accept a dialect name, alias or profile wherever a
profile is expected.
"""
__version__ = '0.1.0'

from collections.abc import Mapping, Sequence
from typing import Any

from dbrecord import record as _record
from dbrecord import validation as _validation
from dbrecord.adapters import type_mapping as _type_mapping
from dbrecord.adapters.column_info import Column, SqlType, columns_from_metadata
from dbrecord.adapters.type_mapping import infer_type
from dbrecord.drivers import DriverHandle, DriverRegistry, acquire_driver
from dbrecord.exceptions import DatabaseError, DbConnectionError, ProgrammingError
from dbrecord.exceptions import ResourceAcquisitionError, RowConversionError
from dbrecord.exceptions import SchemaValidationError, UnsupportedTypeError
from dbrecord.failures import CauseAttribute, FailureCollector, FailureKind
from dbrecord.failures import ValidationFailure
from dbrecord.options import ConnectorOptions
from dbrecord.profile import DialectProfile, get_profile
from dbrecord.record import Operation, Statement
from dbrecord.schema import Field, LogicalType, Schema, SchemaType, parse_schema
from dbrecord.unit import read_partition, read_table, write_rows, write_table
from dbrecord.validation import is_field_compatible, is_type_compatible

Dialect = str | DialectProfile | None


def infer_schema(columns: list[Column], dialect: Dialect = None,
                 name: str = _type_mapping.DEFAULT_RECORD_NAME) -> Schema:
    """Build the record schema for a list of columns.
    """
    return _type_mapping.infer_schema(columns, get_profile(dialect), name)


def validate_fields(schema: Schema, columns: list[Column], dialect: Dialect = None,
                    collector: FailureCollector | None = None, **kwargs: Any) -> list[ValidationFailure]:
    """Validate declared fields against actual columns, collecting every failure.
    """
    return _validation.validate_fields(schema, columns, get_profile(dialect), collector, **kwargs)


def read_record(row: Sequence[Any], schema: Schema, columns: list[Column],
                dialect: Dialect = None) -> Mapping[str, Any]:
    """Read a result row into a record.
    """
    return _record.read_record(row, schema, columns, get_profile(dialect))


def write_record(record: Mapping[str, Any], schema: Schema, columns: list[Column],
                 dialect: Dialect = None, operation: Operation = Operation.INSERT,
                 key_fields: Sequence[str] = ()) -> Statement:
    """Bind a record onto a statement for the destination columns.
    """
    return _record.write_record(record, schema, columns, get_profile(dialect),
                                operation, key_fields)


__all__ = [
    'Column',
    'ConnectorOptions',
    'CauseAttribute',
    'DatabaseError',
    'DbConnectionError',
    'DialectProfile',
    'DriverHandle',
    'DriverRegistry',
    'Field',
    'FailureCollector',
    'FailureKind',
    'LogicalType',
    'Operation',
    'ProgrammingError',
    'ResourceAcquisitionError',
    'RowConversionError',
    'Schema',
    'SchemaType',
    'SchemaValidationError',
    'SqlType',
    'Statement',
    'UnsupportedTypeError',
    'ValidationFailure',
    'acquire_driver',
    'columns_from_metadata',
    'get_profile',
    'infer_schema',
    'infer_type',
    'is_field_compatible',
    'is_type_compatible',
    'parse_schema',
    'read_partition',
    'read_record',
    'read_table',
    'validate_fields',
    'write_record',
    'write_rows',
    'write_table',
]
