"""
Record marshalling between driver rows and universal records.

Read path: `read_field` turns one raw column value of a result row into a
field value. The dialect profile's read override owns the conversion when
it handles the column; otherwise the value is extracted by type code and
conformed to the declared field schema.

Write path: `write_field` binds one record value on a positional
`Statement`. The dialect's write override may own the binding for
dialect-only destination types; otherwise the runtime type family of the
value is checked against the field schema and bound as is.

A row is converted atomically: any failing field raises RowConversionError
and a statement with unbound parameters refuses to hand them out.
"""
import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from dbrecord.adapters.column_info import Column
from dbrecord.adapters.type_conversion import TypeConverter, conform_value
from dbrecord.adapters.type_conversion import extract_value, prepare_parameter
from dbrecord.exceptions import RowConversionError
from dbrecord.profile.base import UNHANDLED
from dbrecord.schema import Field, Schema, SchemaType

from libb import attrdict

if TYPE_CHECKING:
    from dbrecord.profile.base import DialectProfile

logger = logging.getLogger(__name__)

__all__ = [
    'Operation',
    'Statement',
    'read_field',
    'read_record',
    'write_field',
    'write_record',
]


class Operation(Enum):
    """Write operation a record is marshalled for."""
    INSERT = 'insert'
    UPDATE = 'update'
    UPSERT = 'upsert'


class _Unbound:
    def __repr__(self) -> str:
        return '<unbound>'


_UNBOUND = _Unbound()


class Statement:
    """Positional parameters of one parameterized statement.

    Indices are zero-based. `null_types` records the column type of every
    parameter bound as NULL, for drivers that need typed nulls.
    """

    def __init__(self, sql: str | None, size: int) -> None:
        self.sql = sql
        self.size = size
        self.null_types: dict[int, Any] = {}
        self._values: list[Any] = [_UNBOUND] * size

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.size:
            raise IndexError(f'Parameter index {index} out of range for {self.size} parameters')

    def bind(self, index: int, value: Any) -> None:
        """Set the parameter at index."""
        self._check_index(index)
        self._values[index] = value
        self.null_types.pop(index, None)

    def set_null(self, index: int, type_code: Any = None) -> None:
        """Set the parameter at index to a NULL of the given column type."""
        self._check_index(index)
        self._values[index] = None
        self.null_types[index] = type_code

    def is_bound(self, index: int) -> bool:
        self._check_index(index)
        return self._values[index] is not _UNBOUND

    def parameters(self) -> tuple:
        """Bound parameters in order.

        Raises RowConversionError if any parameter is still unbound.
        """
        unbound = [i for i, v in enumerate(self._values) if v is _UNBOUND]
        if unbound:
            raise RowConversionError(f'Statement parameters {unbound} were never bound')
        return tuple(self._values)

    def __repr__(self) -> str:
        return f'Statement(sql={self.sql!r}, values={self._values!r})'


def read_field(row: Sequence[Any], field: Field, column: Column,
               profile: 'DialectProfile | None' = None) -> Any:
    """Read one field value from a result row.

    Args:
        row: Result row indexed by column position
        field: Declared field receiving the value
        column: Metadata of the source column
        profile: Dialect profile whose read override is consulted first

    Returns
        Value in the Python representation of the field schema
    """
    value = row[column.index]
    try:
        if profile is not None:
            result = profile.read(value, field, column)
            if result is not UNHANDLED:
                return result
        if value is None:
            return None
        return conform_value(extract_value(value, column), field.schema.non_nullable())
    except RowConversionError:
        raise
    except (TypeError, ValueError, ArithmeticError) as e:
        raise RowConversionError(
            f"Cannot read column '{column.name}' ({column.type_name or column.type_code}) "
            f"as {field.schema.display_name} for field '{field.name}': {e}",
            field=field.name, column=column.name) from e


def read_record(row: Sequence[Any], schema: Schema, columns: list[Column],
                profile: 'DialectProfile | None' = None) -> attrdict:
    """Read every field of a record schema from a result row.

    Fields are matched to columns by name, so field order does not need to
    follow the result's column order.
    """
    by_name = {column.name: column for column in columns}
    record = attrdict()
    for field in schema.fields:
        column = by_name.get(field.name)
        if column is None:
            raise RowConversionError(f"Field '{field.name}' has no matching column in the result",
                                     field=field.name)
        record[field.name] = read_field(row, field, column, profile)
    return record


def write_field(statement: Statement, index: int, field: Field, column: Column,
                value: Any, profile: 'DialectProfile | None' = None) -> None:
    """Bind one record value at a statement index.

    Args:
        statement: Statement receiving the parameter
        index: Zero-based parameter index
        field: Schema field the value belongs to
        column: Metadata of the destination column
        value: Record value, possibly None
        profile: Dialect profile whose write override is consulted first
    """
    value = TypeConverter.convert_value(value)
    try:
        if profile is not None:
            if profile.write(statement, index, field, column, value) is not UNHANDLED:
                return
        if value is None:
            if not field.schema.nullable and field.schema.type is not SchemaType.NULL:
                raise ValueError('null value for a non-nullable field')
            if column.nullable is False:
                raise ValueError('null value for a NOT NULL column')
            statement.set_null(index, column.type_code)
            return
        statement.bind(index, prepare_parameter(value, field.schema.non_nullable(), column))
    except RowConversionError:
        raise
    except (TypeError, ValueError, ArithmeticError) as e:
        raise RowConversionError(
            f"Cannot write field '{field.name}' ({field.schema.display_name}) "
            f"to column '{column.name}' ({column.type_name or column.type_code}): {e}",
            field=field.name, column=column.name) from e


def _write_column(statement: Statement, index: int, record: Mapping[str, Any],
                  schema: Schema, column: Column, profile: 'DialectProfile | None') -> None:
    field = schema.get_field(column.name)
    if field is None:
        if column.nullable is False:
            raise RowConversionError(f"Record is missing required field '{column.name}'",
                                     field=column.name, column=column.name)
        statement.set_null(index, column.type_code)
        return
    # an absent key is written exactly like an explicit None
    write_field(statement, index, field, column, record.get(column.name), profile)


def write_record(record: Mapping[str, Any], schema: Schema, columns: list[Column],
                 profile: 'DialectProfile | None' = None,
                 operation: Operation = Operation.INSERT,
                 key_fields: Sequence[str] = (), sql: str | None = None) -> Statement:
    """Bind a record onto a new statement, one parameter per column.

    Parameters follow the order of `columns`. For UPDATE the key field values
    are appended for the WHERE clause.

    Args:
        record: Mapping of field name to value
        schema: Record schema describing the values
        columns: Destination columns in statement order
        profile: Dialect profile for write overrides
        operation: Write operation the statement text was built for
        key_fields: Key columns for UPDATE/UPSERT
        sql: Statement text carried along with the parameters

    Returns
        Fully bound Statement
    """
    keys = list(key_fields) if operation is Operation.UPDATE else []
    statement = Statement(sql, len(columns) + len(keys))

    for index, column in enumerate(columns):
        _write_column(statement, index, record, schema, column, profile)

    if keys:
        by_name = {column.name: column for column in columns}
        for offset, key in enumerate(keys):
            column = by_name.get(key)
            if column is None:
                raise RowConversionError(f"Key field '{key}' is not a destination column", field=key)
            _write_column(statement, len(columns) + offset, record, schema, column, profile)

    return statement
