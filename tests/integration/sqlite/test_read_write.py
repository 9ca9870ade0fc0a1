"""End-to-end reads and writes against a file-based SQLite database.

SQLite reports no types for result columns, so reads are driven by the
declared record schema; writes are validated against the reflected
`people` table.
"""
import datetime
import decimal

import pytest
from dbrecord.exceptions import RowConversionError, SchemaValidationError
from dbrecord.failures import CauseAttribute, FailureKind
from dbrecord.options import ConnectorOptions, pandas_pyarrow_data_loader
from dbrecord.profile import get_profile
from dbrecord.record import Operation
from dbrecord.schema import Field, Schema, SchemaType
from dbrecord.unit import describe_query, read_partition, write_rows, write_table
from dbrecord.unit import read_table

SQLITE = get_profile('sqlite')


def count_rows(handle, table='people'):
    with handle.connect() as cn:
        cursor = cn.cursor()
        cursor.execute(f'SELECT COUNT(*) FROM {table}')
        count = cursor.fetchone()[0]
        cursor.close()
    return count


def read_people(handle, schema):
    return list(read_partition(handle, 'SELECT * FROM people ORDER BY id', SQLITE, schema))


class TestWrite:
    """write_rows validates first and writes in one transaction."""

    def test_insert_and_read_back(self, sqlite_handle, people_schema, people_records):
        written = write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        assert written == 3
        assert read_people(sqlite_handle, people_schema) == people_records

    def test_decimal_keeps_scale(self, sqlite_handle, people_schema, people_records):
        write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        records = read_people(sqlite_handle, people_schema)
        assert records[1].amount == decimal.Decimal('100.00')
        assert records[1].amount.as_tuple().exponent == -2

    def test_batches(self, sqlite_handle, people_schema, people_records):
        assert write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE,
                          batch_size=2) == 3
        assert count_rows(sqlite_handle) == 3

    def test_update(self, sqlite_handle, people_schema, people_records):
        write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        changed = {**people_records[0], 'name': 'Alicia', 'score': 99.0}
        write_rows(sqlite_handle, 'people', [changed], people_schema, SQLITE,
                   operation=Operation.UPDATE, key_fields=['id'])

        records = read_people(sqlite_handle, people_schema)
        assert records[0].name == 'Alicia'
        assert records[0].score == 99.0
        assert records[1] == people_records[1]

    def test_upsert(self, sqlite_handle, people_schema, people_records):
        write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        changed = {**people_records[1], 'name': 'Robert'}
        added = {**people_records[2], 'id': 4, 'name': 'Dana'}
        write_rows(sqlite_handle, 'people', [changed, added], people_schema, SQLITE,
                   operation='upsert', key_fields=['id'])

        records = read_people(sqlite_handle, people_schema)
        assert [r.id for r in records] == [1, 2, 3, 4]
        assert records[1].name == 'Robert'
        assert records[3].name == 'Dana'

    def test_conversion_error_rolls_back_every_batch(self, sqlite_handle, people_schema,
                                                     people_records):
        bad = {**people_records[2], 'score': 'high'}
        with pytest.raises(RowConversionError) as exc_info:
            write_rows(sqlite_handle, 'people', [*people_records[:2], bad], people_schema,
                       SQLITE, batch_size=1)
        assert exc_info.value.field == 'score'
        assert count_rows(sqlite_handle) == 0

    def test_driver_error_rolls_back(self, sqlite_handle, people_schema, people_records):
        duplicate = {**people_records[1], 'id': 1}
        with pytest.raises(Exception, match='UNIQUE'):
            write_rows(sqlite_handle, 'people', [people_records[0], duplicate], people_schema, SQLITE)
        assert count_rows(sqlite_handle) == 0

    def test_schema_failures_before_any_row(self, sqlite_handle, people_schema, people_records):
        schema = Schema.record_of('people', [
            Field('id', Schema.of(SchemaType.INT)),
            Field('name', Schema.of(SchemaType.STRING).to_nullable()),
            Field('score', Schema.of(SchemaType.BOOLEAN)),
            Field('email', Schema.of(SchemaType.STRING)),
        ])
        with pytest.raises(SchemaValidationError) as exc_info:
            write_rows(sqlite_handle, 'people', people_records, schema, SQLITE)

        failures = {f.field: f for f in exc_info.value.failures}
        assert failures['name'].kind is FailureKind.NULLABILITY_MISMATCH
        assert failures['score'].kind is FailureKind.TYPE_MISMATCH
        assert failures['email'].kind is FailureKind.MISSING_FIELD
        assert all(f.attribute is CauseAttribute.INPUT_SCHEMA_FIELD for f in failures.values())
        assert count_rows(sqlite_handle) == 0

    def test_partial_schema_leaves_nullable_columns_null(self, sqlite_handle):
        schema = Schema.record_of('people', [
            Field('id', Schema.of(SchemaType.INT)),
            Field('name', Schema.of(SchemaType.STRING)),
        ])
        write_rows(sqlite_handle, 'people', [{'id': 9, 'name': 'Eve'}], schema, SQLITE)
        with sqlite_handle.connect() as cn:
            cursor = cn.cursor()
            cursor.execute('SELECT score, payload FROM people WHERE id = 9')
            assert cursor.fetchone() == (None, None)
            cursor.close()


class TestRead:
    """read_partition validates the declared schema against the result."""

    def test_inferred_schema_is_string(self, sqlite_handle, people_schema, people_records):
        write_rows(sqlite_handle, 'people', people_records[:1], people_schema, SQLITE)
        schema = describe_query(sqlite_handle, 'SELECT id, name FROM people', SQLITE)
        assert schema.get_field('id').schema == Schema.of(SchemaType.STRING).to_nullable()

        records = list(read_partition(sqlite_handle, 'SELECT id, name FROM people', SQLITE))
        assert records == [{'id': '1', 'name': 'Alice'}]

    def test_missing_output_field(self, sqlite_handle, people_schema):
        schema = Schema.record_of('people', [Field('email', Schema.of(SchemaType.STRING))])
        with pytest.raises(SchemaValidationError) as exc_info:
            list(read_partition(sqlite_handle, 'SELECT id, name FROM people', SQLITE, schema))
        failure = exc_info.value.failures[0]
        assert failure.field == 'email'
        assert failure.attribute is CauseAttribute.OUTPUT_SCHEMA_FIELD

    def test_bound_parameters(self, sqlite_handle, people_schema, people_records):
        write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        records = list(read_partition(sqlite_handle, 'SELECT * FROM people WHERE id >= ?',
                                      SQLITE, people_schema, fetch_size=1, params=(2,)))
        assert [r.id for r in records] == [2, 3]

    def test_timestamps_read_as_utc(self, sqlite_handle, people_schema, people_records):
        write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        updated = read_people(sqlite_handle, people_schema)[1].updated
        assert updated.tzinfo is datetime.UTC
        assert updated.microsecond == 123456


class TestConnectorUnits:
    """read_table and write_table driven by ConnectorOptions."""

    def test_write_then_partitioned_read(self, sqlite_handle, sqlite_url, people_schema,
                                         people_records):
        write_options = ConnectorOptions(url=sqlite_url, table='people', record_schema=people_schema)
        assert write_table(write_options, people_records) == 3

        read_options = ConnectorOptions(
            url=sqlite_url,
            query='SELECT * FROM people WHERE $CONDITIONS',
            bounding_query='SELECT MIN(id), MAX(id) FROM people',
            split_by='id',
            num_splits=2,
            record_schema=people_schema,
        )
        records = sorted(read_table(read_options), key=lambda r: r['id'])
        assert records == people_records

    def test_single_partition_without_conditions(self, sqlite_handle, sqlite_url, people_schema,
                                                 people_records):
        write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        options = ConnectorOptions(url=sqlite_url, query='SELECT * FROM people ORDER BY id',
                                   record_schema=people_schema)
        assert [r['name'] for r in read_table(options)] == ['Alice', 'Bob', 'Charlie']

    def test_dataframe_loader(self, sqlite_handle, sqlite_url, people_schema, people_records):
        write_rows(sqlite_handle, 'people', people_records, people_schema, SQLITE)
        options = ConnectorOptions(url=sqlite_url, query='SELECT * FROM people WHERE $CONDITIONS',
                                   record_schema=people_schema,
                                   data_loader=pandas_pyarrow_data_loader)
        df = read_table(options)
        assert list(df.columns) == people_schema.field_names
        assert df.loc[0, 'amount'] == decimal.Decimal('123.45')
        assert df.attrs['column_types']['born'] == {'type': 'int', 'logicalType': 'date', 'nullable': True}

    def test_write_requires_schema(self, sqlite_url, people_records):
        options = ConnectorOptions(url=sqlite_url, table='people')
        with pytest.raises(ValueError, match='record schema'):
            write_table(options, people_records)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
