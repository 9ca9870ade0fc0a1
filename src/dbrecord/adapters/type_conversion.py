"""
Value conversion between driver-native values and universal record fields.

Read direction (Database -> Record):
1. `READERS` maps a standard type code to an extraction function producing a
   canonical Python value (int, float, Decimal, str, bytes, date, time, UTC
   datetime).
2. `conform_value` coerces the canonical value to the declared field schema.

Write direction (Record -> Database):
1. `TypeConverter.convert_value` normalizes NumPy, Pandas and PyArrow values
   to plain Python.
2. `prepare_parameter` checks the runtime type family against the field
   schema and returns the value to bind.

Python value representation of universal types:

    BOOLEAN          bool
    INT, LONG        int (range checked)
    FLOAT, DOUBLE    float
    STRING           str
    BYTES            bytes
    DATE             datetime.date
    TIME_*           datetime.time
    TIMESTAMP_*      datetime.datetime, timezone aware in UTC
    DATETIME         datetime.datetime, naive
    DECIMAL          decimal.Decimal quantized to the schema scale
"""
import datetime
import decimal
import logging
import math
import sqlite3
from collections.abc import Callable
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd
import pyarrow as pa
from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.schema import LogicalType, Schema, SchemaType

logger = logging.getLogger(__name__)

UTC = datetime.UTC

INT_RANGE = (-(2 ** 31), 2 ** 31 - 1)
LONG_RANGE = (-(2 ** 63), 2 ** 63 - 1)


# =============================================================================
# Parameter normalization
# =============================================================================


def _convert_pyarrow_value(value: Any) -> Any:
    """
    Convert PyArrow value to Python type.

    Args:
        value: PyArrow scalar or array

    Returns
        Converted Python value or None
    """
    if isinstance(value, pa.Scalar):
        return value.as_py()
    if isinstance(value, pa.Array | pa.ChunkedArray):
        return value.to_pylist()
    return value


def _convert_numpy_value(val: Any) -> Any:
    """
    Convert NumPy scalar value to Python type.

    Handles NaN and NaT as missing values.

    Args:
        val: NumPy value to convert

    Returns
        Converted Python value or None
    """
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        logger.debug(f'Converting np.datetime64 to Python datetime: {val}')
        return pd.Timestamp(val).to_pydatetime()

    if isinstance(val, np.bool_ | np.floating | np.integer | np.unsignedinteger):
        return val.item()

    if isinstance(val, np.ndarray):
        return val.tolist()

    return val


class TypeConverter:
    """Normalization of record values before they are bound as parameters"""

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to plain Python

        Args:
            value: Any Python, NumPy, Pandas or PyArrow value

        Returns
            Plain Python value, None for missing markers (NaN, NaT, pd.NA)
        """
        if value is None:
            return None

        if isinstance(value, float) and math.isnan(value):
            return None

        if isinstance(value, np.generic | np.ndarray):
            return _convert_numpy_value(value)

        if isinstance(value, pa.Scalar | pa.Array | pa.ChunkedArray):
            return _convert_pyarrow_value(value)

        if isinstance(value, pd.Timestamp):
            return None if pd.isna(value) else value.to_pydatetime()

        if value is pd.NA or value is pd.NaT:
            return None

        return value


# =============================================================================
# Canonical value helpers
# =============================================================================


def _require(value: Any, kinds: type | tuple, label: str) -> None:
    if isinstance(value, bool) and bool not in (kinds if isinstance(kinds, tuple) else (kinds,)):
        raise TypeError(f'Expected {label}, got bool')
    if not isinstance(value, kinds):
        raise TypeError(f'Expected {label}, got {type(value).__name__}')


def to_bool(value: Any) -> bool:
    """Booleans arrive as bool, 0/1 integers or bit strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, bytes | bytearray):
        return any(value)
    if isinstance(value, str) and value.lower() in {'0', '1', 'true', 'false', 't', 'f'}:
        return value.lower() in {'1', 'true', 't'}
    raise TypeError(f'Cannot read {type(value).__name__} as boolean')


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, decimal.Decimal) and value == value.to_integral_value():
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f'Cannot read {type(value).__name__} {value!r} as integer')


def to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError('Cannot read bool as floating point')
    if isinstance(value, int | float | decimal.Decimal | str):
        return float(value)
    raise TypeError(f'Cannot read {type(value).__name__} as floating point')


def to_str(value: Any) -> str:
    """String form of any canonical value."""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode()
    if isinstance(value, decimal.Decimal):
        return format(value, 'f')
    if isinstance(value, datetime.date | datetime.time):
        return value.isoformat()
    return str(value)


def to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)
    if isinstance(value, str):
        return value.encode()
    raise TypeError(f'Cannot read {type(value).__name__} as bytes')


def to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str | bytes):
        text = value.decode() if isinstance(value, bytes) else value
        return dateutil.parser.isoparse(text).date()
    raise TypeError(f'Cannot read {type(value).__name__} as date')


def to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.datetime):
        return value.timetz()
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, datetime.timedelta):
        return (datetime.datetime.min + value).time()
    if isinstance(value, str | bytes):
        text = value.decode() if isinstance(value, bytes) else value
        return dateutil.parser.parse(text).timetz()
    raise TypeError(f'Cannot read {type(value).__name__} as time')


def to_timestamp(value: Any) -> datetime.datetime:
    """Timestamp as an aware UTC datetime.

    Naive values are taken to already be in UTC.
    """
    if isinstance(value, str | bytes):
        text = value.decode() if isinstance(value, bytes) else value
        value = dateutil.parser.isoparse(text)
    elif isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time())
    if not isinstance(value, datetime.datetime):
        raise TypeError(f'Cannot read {type(value).__name__} as timestamp')
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_local_datetime(value: Any) -> datetime.datetime:
    """Zone-less datetime; aware values are expressed in UTC first."""
    if isinstance(value, str | bytes):
        text = value.decode() if isinstance(value, bytes) else value
        value = dateutil.parser.isoparse(text)
    elif isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time())
    if not isinstance(value, datetime.datetime):
        raise TypeError(f'Cannot read {type(value).__name__} as datetime')
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.replace(tzinfo=None)


def to_decimal(value: Any, precision: int | None = None, scale: int | None = None,
               rounding: str | None = None) -> decimal.Decimal:
    """Convert to Decimal, optionally fitted to a precision and scale.

    Without `rounding` the conversion must be exact: a value whose digits do
    not fit the scale raises ValueError instead of being rounded.

    Args:
        value: Decimal, int, float or numeric string
        precision: Maximum total digits, or None for unbounded
        scale: Digits after the decimal point, or None to keep the value's own
        rounding: A decimal rounding mode such as decimal.ROUND_HALF_EVEN

    Returns
        Decimal with exponent -scale when scale is given
    """
    if isinstance(value, bool):
        raise TypeError('Cannot read bool as decimal')
    if isinstance(value, decimal.Decimal):
        result = value
    elif isinstance(value, int):
        result = decimal.Decimal(value)
    elif isinstance(value, float):
        result = decimal.Decimal(repr(value))
    elif isinstance(value, str):
        result = decimal.Decimal(value.strip())
    else:
        raise TypeError(f'Cannot read {type(value).__name__} as decimal')

    if not result.is_finite():
        raise ValueError(f'Decimal value {result} is not finite')

    if scale is not None:
        context = decimal.Context(prec=max(decimal.getcontext().prec,
                                           (precision or 0) + 2,
                                           len(result.as_tuple().digits) + scale + 2))
        quantum = decimal.Decimal(1).scaleb(-scale)
        fitted = result.quantize(quantum, rounding=rounding or decimal.ROUND_HALF_EVEN,
                                 context=context)
        if rounding is None and fitted != result:
            raise ValueError(f'Decimal value {result} does not fit scale {scale}')
        result = fitted

    if precision:
        int_digits = result.adjusted() + 1 if result != 0 else 0
        if int_digits > precision - (scale or 0):
            raise ValueError(f'Decimal value {result} exceeds precision {precision}')

    return result


def _to_numeric(value: Any) -> decimal.Decimal:
    return to_decimal(value)


def truncate_millis(value: datetime.datetime | datetime.time):
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


# =============================================================================
# Read: extraction by type code
# =============================================================================

READERS: dict[int, Callable[[Any], Any]] = {}
for _code in (SqlType.BIT, SqlType.BOOLEAN):
    READERS[_code] = to_bool
for _code in (SqlType.TINYINT, SqlType.SMALLINT, SqlType.INTEGER, SqlType.BIGINT):
    READERS[_code] = to_int
for _code in (SqlType.REAL, SqlType.FLOAT, SqlType.DOUBLE):
    READERS[_code] = to_float
for _code in (SqlType.NUMERIC, SqlType.DECIMAL):
    READERS[_code] = _to_numeric
for _code in (SqlType.CHAR, SqlType.VARCHAR, SqlType.LONGVARCHAR, SqlType.NCHAR,
              SqlType.NVARCHAR, SqlType.LONGNVARCHAR, SqlType.CLOB, SqlType.NCLOB,
              SqlType.ROWID, SqlType.SQLXML):
    READERS[_code] = to_str
for _code in (SqlType.BINARY, SqlType.VARBINARY, SqlType.LONGVARBINARY, SqlType.BLOB):
    READERS[_code] = to_bytes
READERS[SqlType.DATE] = to_date
READERS[SqlType.TIME] = to_time
READERS[SqlType.TIME_WITH_TIMEZONE] = to_time
READERS[SqlType.TIMESTAMP] = to_timestamp
READERS[SqlType.TIMESTAMP_WITH_TIMEZONE] = to_timestamp
READERS[SqlType.NULL] = lambda value: None


def extract_value(value: Any, column: Column) -> Any:
    """Canonical Python value for a raw driver value of a column.

    Codes without a reader (vendor or untyped columns) pass through.
    """
    reader = READERS.get(column.type_code)
    return value if reader is None else reader(value)


def _check_range(value: int, bounds: tuple[int, int], label: str) -> int:
    if not bounds[0] <= value <= bounds[1]:
        raise ValueError(f'Value {value} out of range for {label}')
    return value


def _conform_logical(value: Any, schema: Schema) -> Any:
    logical = schema.logical_type
    if logical is LogicalType.DECIMAL:
        return to_decimal(value, schema.precision, schema.scale)
    if logical is LogicalType.DATE:
        return to_date(value)
    if logical is LogicalType.TIME_MILLIS:
        return truncate_millis(to_time(value))
    if logical is LogicalType.TIME_MICROS:
        return to_time(value)
    if logical is LogicalType.TIMESTAMP_MILLIS:
        return truncate_millis(to_timestamp(value))
    if logical is LogicalType.TIMESTAMP_MICROS:
        return to_timestamp(value)
    if logical is LogicalType.DATETIME:
        return to_local_datetime(value)
    raise TypeError(f'Unsupported logical type {logical}')


def conform_value(value: Any, schema: Schema) -> Any:
    """Coerce a canonical value to the representation of a field schema.

    Args:
        value: Canonical value produced by a reader
        schema: Declared field schema (nullability ignored)

    Returns
        Value in the Python representation of the schema
    """
    if value is None:
        return None
    if schema.logical_type is not None:
        return _conform_logical(value, schema)

    match schema.type:
        case SchemaType.NULL:
            return None
        case SchemaType.BOOLEAN:
            return to_bool(value)
        case SchemaType.INT:
            return _check_range(to_int(value), INT_RANGE, 'int')
        case SchemaType.LONG:
            return _check_range(to_int(value), LONG_RANGE, 'long')
        case SchemaType.FLOAT | SchemaType.DOUBLE:
            return to_float(value)
        case SchemaType.STRING:
            return to_str(value)
        case SchemaType.BYTES:
            return to_bytes(value)
        case SchemaType.ARRAY:
            if isinstance(value, str | bytes) or not hasattr(value, '__iter__'):
                raise TypeError(f'Cannot read {type(value).__name__} as array')
            return [conform_value(item, schema.items) for item in value]
        case SchemaType.RECORD:
            if not isinstance(value, dict):
                raise TypeError(f'Cannot read {type(value).__name__} as record')
            return {f.name: conform_value(value.get(f.name), f.schema) for f in schema.fields}
    raise TypeError(f'Unsupported schema type {schema.type}')


# =============================================================================
# Write: parameter preparation by schema
# =============================================================================


def _write_logical(value: Any, schema: Schema, column: Column) -> Any:
    logical = schema.logical_type
    if logical is LogicalType.DECIMAL:
        _require(value, (decimal.Decimal, int), 'decimal')
        return to_decimal(value, schema.precision, schema.scale)
    if logical is LogicalType.DATE:
        if isinstance(value, datetime.datetime):
            raise TypeError('Expected date, got datetime')
        _require(value, datetime.date, 'date')
        return value
    if schema.is_time:
        _require(value, datetime.time, 'time')
        return value
    if schema.is_timestamp:
        _require(value, datetime.datetime, 'datetime')
        value = to_timestamp(value)
        if column.type_code == SqlType.TIMESTAMP_WITH_TIMEZONE:
            return value
        return value.replace(tzinfo=None)
    if logical is LogicalType.DATETIME:
        _require(value, (datetime.datetime, str), 'datetime')
        return to_local_datetime(value)
    raise TypeError(f'Unsupported logical type {logical}')


def prepare_parameter(value: Any, schema: Schema, column: Column) -> Any:
    """Check the runtime type of a record value and return the value to bind.

    Raises TypeError when the value's type family does not match the schema
    and ValueError when it does not fit (range, precision).
    """
    if schema.logical_type is not None:
        return _write_logical(value, schema, column)

    match schema.type:
        case SchemaType.BOOLEAN:
            _require(value, bool, 'bool')
            return value
        case SchemaType.INT:
            _require(value, int, 'int')
            return _check_range(value, INT_RANGE, 'int')
        case SchemaType.LONG:
            _require(value, int, 'int')
            return _check_range(value, LONG_RANGE, 'long')
        case SchemaType.FLOAT | SchemaType.DOUBLE:
            _require(value, (float, int), 'float')
            return float(value)
        case SchemaType.STRING:
            _require(value, str, 'str')
            return value
        case SchemaType.BYTES:
            _require(value, (bytes, bytearray, memoryview), 'bytes')
            return bytes(value)
        case SchemaType.ARRAY:
            _require(value, (list, tuple), 'list')
            return [prepare_parameter(item, schema.items, column) for item in value]
    raise TypeError(f'Cannot write {schema.display_name} values')


# =============================================================================
# SQLite adapters
# =============================================================================


def adapt_date_iso(val: datetime.date) -> str:
    """Convert date to ISO 8601 format string.

    >>> import datetime
    >>> adapt_date_iso(datetime.date(2023, 5, 15))
    '2023-05-15'
    """
    return val.isoformat()


def adapt_datetime_iso(val: datetime.datetime) -> str:
    """Convert datetime to ISO 8601 format string.

    >>> import datetime
    >>> dt = datetime.datetime(2023, 5, 15, 14, 30, 45)
    >>> adapt_datetime_iso(dt).startswith('2023-05-15T14:30:45')
    True
    """
    return val.isoformat()


def adapt_time_iso(val: datetime.time) -> str:
    return val.isoformat()


def adapt_decimal(val: decimal.Decimal) -> str:
    """Decimals are stored as text to keep every digit.

    >>> import decimal
    >>> adapt_decimal(decimal.Decimal('123.450'))
    '123.450'
    """
    return format(val, 'f')


def register_sqlite_adapters() -> None:
    """Register SQLite parameter adapters.

    Due to SQLite's architecture, adapters are registered globally rather
    than per-connection.
    """
    sqlite3.register_adapter(datetime.date, adapt_date_iso)
    sqlite3.register_adapter(datetime.datetime, adapt_datetime_iso)
    sqlite3.register_adapter(datetime.time, adapt_time_iso)
    sqlite3.register_adapter(decimal.Decimal, adapt_decimal)
