"""Unit tests for value conversion.

Tests the public API:
- TypeConverter.convert_value - NumPy, Pandas, PyArrow normalization
- extract_value / conform_value - Read direction
- prepare_parameter - Write direction
- to_decimal - Exact and rounding decimal fitting
"""
import datetime
import decimal

import numpy as np
import pandas as pd
import pyarrow as pa
import pytest
from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.adapters.type_conversion import TypeConverter, conform_value, extract_value
from dbrecord.adapters.type_conversion import prepare_parameter, to_bool, to_decimal
from dbrecord.adapters.type_conversion import to_local_datetime, to_timestamp
from dbrecord.schema import LogicalType, Schema, SchemaType

UTC = datetime.UTC


class TestTypeConverter:
    """Record values are normalized to plain Python before binding."""

    @pytest.mark.parametrize(('value', 'expected'), [
        (np.int64(42), 42),
        (np.float64(1.5), 1.5),
        (np.bool_(True), True),
        (np.float64('nan'), None),
        (np.datetime64('NaT'), None),
        (float('nan'), None),
        (pd.NA, None),
        (pd.NaT, None),
        (pa.scalar(7), 7),
        (pa.scalar(None, type=pa.int64()), None),
        ('text', 'text'),
    ], ids=['np_int', 'np_float', 'np_bool', 'np_nan', 'np_nat', 'float_nan',
            'pd_na', 'pd_nat', 'pa_scalar', 'pa_null', 'str'])
    def test_convert_value(self, value, expected):
        result = TypeConverter.convert_value(value)
        assert result == expected
        assert type(result) is type(expected)

    def test_numpy_datetime(self):
        result = TypeConverter.convert_value(np.datetime64('2023-05-15T14:30:45'))
        assert result == datetime.datetime(2023, 5, 15, 14, 30, 45)

    def test_pandas_timestamp(self):
        result = TypeConverter.convert_value(pd.Timestamp('2023-05-15 14:30:45', tz='UTC'))
        assert isinstance(result, datetime.datetime)
        assert result == datetime.datetime(2023, 5, 15, 14, 30, 45, tzinfo=UTC)


class TestDecimal:
    """Decimals fit a precision and scale exactly unless rounding is asked for."""

    def test_exact_fit(self):
        assert to_decimal('123.45', 10, 2) == decimal.Decimal('123.45')
        assert to_decimal(100, 10, 2).as_tuple().exponent == -2

    def test_float_uses_shortest_repr(self):
        assert to_decimal(123.45, 10, 2) == decimal.Decimal('123.45')

    def test_inexact_fit_raises(self):
        with pytest.raises(ValueError, match='does not fit scale'):
            to_decimal('1.005', 10, 2)

    @pytest.mark.parametrize(('value', 'expected'), [
        ('2.345', '2.34'),
        ('2.355', '2.36'),
        ('-2.345', '-2.34'),
    ], ids=['half_even_down', 'half_even_up', 'negative'])
    def test_half_even_rounding(self, value, expected):
        result = to_decimal(value, 10, 2, rounding=decimal.ROUND_HALF_EVEN)
        assert result == decimal.Decimal(expected)

    def test_precision_overflow(self):
        with pytest.raises(ValueError, match='exceeds precision'):
            to_decimal('123456.7', 5, 1)

    def test_zero_without_integer_digits(self):
        assert to_decimal(0, 2, 2) == decimal.Decimal('0.00')
        assert to_decimal('-0.00', 3, 3).is_zero()

    def test_rejects_bool_and_non_finite(self):
        with pytest.raises(TypeError):
            to_decimal(True)
        with pytest.raises(ValueError):
            to_decimal('NaN')


class TestReadDirection:
    """extract_value by type code, then conform_value to the field."""

    def test_extract_by_type_code(self):
        assert extract_value(1, Column('b', SqlType.BIT)) is True
        assert extract_value('42', Column('i', SqlType.INTEGER)) == 42
        assert extract_value(b'abc', Column('s', SqlType.VARCHAR)) == 'abc'
        assert extract_value(memoryview(b'ab'), Column('b', SqlType.BLOB)) == b'ab'

    def test_untyped_values_pass_through(self):
        assert extract_value({'a': 1}, Column('o', SqlType.OTHER)) == {'a': 1}

    def test_timestamps_are_utc(self):
        naive = extract_value(datetime.datetime(2023, 1, 1, 12), Column('t', SqlType.TIMESTAMP))
        assert naive.tzinfo is UTC
        offset = datetime.timezone(datetime.timedelta(hours=2))
        aware = to_timestamp(datetime.datetime(2023, 1, 1, 12, tzinfo=offset))
        assert aware == datetime.datetime(2023, 1, 1, 10, tzinfo=UTC)

    def test_iso_strings(self):
        assert to_timestamp('2023-05-15T14:30:45') == datetime.datetime(2023, 5, 15, 14, 30, 45,
                                                                        tzinfo=UTC)
        assert to_local_datetime('2023-05-15T14:30:45+02:00') == datetime.datetime(2023, 5, 15, 12, 30, 45)

    @pytest.mark.parametrize(('value', 'schema', 'expected'), [
        (7, Schema.of(SchemaType.LONG), 7),
        (7.0, Schema.of(SchemaType.INT), 7),
        ('x', Schema.of(SchemaType.STRING), 'x'),
        (decimal.Decimal('1.50'), Schema.of(SchemaType.STRING), '1.50'),
        (1, Schema.of(SchemaType.BOOLEAN), True),
        ('2023-05-15', Schema.of_logical(LogicalType.DATE), datetime.date(2023, 5, 15)),
        (datetime.time(1, 2, 3, 456789), Schema.of_logical(LogicalType.TIME_MILLIS),
         datetime.time(1, 2, 3, 456000)),
        ([1, 2], Schema.array_of(Schema.of(SchemaType.LONG)), [1, 2]),
    ], ids=['long', 'int_from_float', 'string', 'decimal_as_string', 'bool',
            'date_from_text', 'time_millis', 'array'])
    def test_conform(self, value, schema, expected):
        assert conform_value(value, schema) == expected

    def test_conform_int_range(self):
        with pytest.raises(ValueError, match='out of range'):
            conform_value(2 ** 31, Schema.of(SchemaType.INT))

    def test_conform_rejects_wrong_family(self):
        with pytest.raises(TypeError):
            conform_value(5, Schema.of_logical(LogicalType.DATE))

    def test_to_bool_rejects_text(self):
        with pytest.raises(TypeError):
            to_bool('maybe')


class TestWriteDirection:
    """prepare_parameter checks the runtime type family against the field."""

    column = Column('c', SqlType.OTHER)

    @pytest.mark.parametrize(('value', 'schema'), [
        (True, Schema.of(SchemaType.INT)),
        (1, Schema.of(SchemaType.BOOLEAN)),
        ('1', Schema.of(SchemaType.LONG)),
        (1.5, Schema.of(SchemaType.STRING)),
        ('abc', Schema.of(SchemaType.BYTES)),
        (datetime.datetime(2023, 1, 1), Schema.of_logical(LogicalType.DATE)),
        (1.5, Schema.decimal_of(10, 2)),
        ('12:00', Schema.of_logical(LogicalType.TIME_MICROS)),
    ], ids=['bool_as_int', 'int_as_bool', 'str_as_long', 'float_as_str',
            'str_as_bytes', 'datetime_as_date', 'float_as_decimal', 'str_as_time'])
    def test_wrong_family_raises(self, value, schema):
        with pytest.raises(TypeError):
            prepare_parameter(value, schema, self.column)

    def test_int_range(self):
        with pytest.raises(ValueError):
            prepare_parameter(2 ** 31, Schema.of(SchemaType.INT), self.column)
        assert prepare_parameter(2 ** 31, Schema.of(SchemaType.LONG), self.column) == 2 ** 31

    def test_float_accepts_int(self):
        result = prepare_parameter(3, Schema.of(SchemaType.DOUBLE), self.column)
        assert result == 3.0
        assert isinstance(result, float)

    def test_decimal_fitted_to_scale(self):
        result = prepare_parameter(decimal.Decimal('123.4'), Schema.decimal_of(10, 2), self.column)
        assert str(result) == '123.40'

    def test_timestamp_for_plain_column_is_naive_utc(self):
        offset = datetime.timezone(datetime.timedelta(hours=-5))
        value = datetime.datetime(2023, 1, 1, 7, tzinfo=offset)
        schema = Schema.of_logical(LogicalType.TIMESTAMP_MICROS)
        plain = prepare_parameter(value, schema, Column('t', SqlType.TIMESTAMP))
        assert plain == datetime.datetime(2023, 1, 1, 12)
        zoned = prepare_parameter(value, schema, Column('t', SqlType.TIMESTAMP_WITH_TIMEZONE))
        assert zoned == datetime.datetime(2023, 1, 1, 12, tzinfo=UTC)

    def test_bytes_copied(self):
        assert prepare_parameter(bytearray(b'ab'), Schema.of(SchemaType.BYTES), self.column) == b'ab'


if __name__ == '__main__':
    __import__('pytest').main([__file__])
