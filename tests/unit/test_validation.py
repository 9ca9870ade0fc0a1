"""Unit tests for field compatibility validation.

Tests the public API:
- is_type_compatible(schema, sql_type, signed) - Generic table only
- is_field_compatible(field, column, profile) - Profile override first
- validate_fields(schema, columns, profile, collector, ...) - Collects every failure
"""
import pytest
from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.exceptions import SchemaValidationError
from dbrecord.failures import CauseAttribute, FailureCollector, FailureKind
from dbrecord.profile import get_profile
from dbrecord.profile.base import DialectProfile
from dbrecord.schema import Field, LogicalType, Schema, SchemaType
from dbrecord.validation import is_field_compatible, is_type_compatible, validate_fields


class TestGenericCompatibility:
    """The generic table of accepted type codes per universal type."""

    @pytest.mark.parametrize(('schema', 'sql_type'), [
        (Schema.of(SchemaType.BOOLEAN), SqlType.BOOLEAN),
        (Schema.of(SchemaType.BOOLEAN), SqlType.BIT),
        (Schema.of(SchemaType.INT), SqlType.INTEGER),
        (Schema.of(SchemaType.INT), SqlType.SMALLINT),
        (Schema.of(SchemaType.INT), SqlType.TINYINT),
        (Schema.of(SchemaType.LONG), SqlType.BIGINT),
        (Schema.of(SchemaType.FLOAT), SqlType.REAL),
        (Schema.of(SchemaType.DOUBLE), SqlType.DOUBLE),
        (Schema.of(SchemaType.STRING), SqlType.NVARCHAR),
        (Schema.of(SchemaType.STRING), SqlType.CLOB),
        (Schema.of(SchemaType.BYTES), SqlType.LONGVARBINARY),
        (Schema.of_logical(LogicalType.DATE), SqlType.DATE),
        (Schema.of_logical(LogicalType.TIME_MICROS), SqlType.TIME),
        (Schema.of_logical(LogicalType.TIMESTAMP_MILLIS), SqlType.TIMESTAMP_WITH_TIMEZONE),
        (Schema.of_logical(LogicalType.DATETIME), SqlType.TIMESTAMP),
        (Schema.decimal_of(10, 2), SqlType.NUMERIC),
        (Schema.decimal_of(10, 2), SqlType.DECIMAL),
        (Schema.of(SchemaType.NULL), SqlType.VARCHAR),
    ], ids=lambda v: v.name if isinstance(v, SqlType) else v.display_name)
    def test_compatible(self, schema, sql_type):
        assert is_type_compatible(schema, sql_type)
        assert is_type_compatible(schema.to_nullable(), sql_type)

    @pytest.mark.parametrize(('schema', 'sql_type'), [
        (Schema.of(SchemaType.LONG), SqlType.TIMESTAMP),
        (Schema.of(SchemaType.DOUBLE), SqlType.VARCHAR),
        (Schema.of(SchemaType.BOOLEAN), SqlType.TINYINT),
        (Schema.of(SchemaType.INT), SqlType.BIGINT),
        (Schema.of(SchemaType.FLOAT), SqlType.DOUBLE),
        (Schema.of(SchemaType.STRING), SqlType.NUMERIC),
        (Schema.of(SchemaType.BYTES), SqlType.VARCHAR),
        (Schema.of_logical(LogicalType.DATE), SqlType.TIMESTAMP),
        (Schema.of_logical(LogicalType.DATETIME), SqlType.TIMESTAMP_WITH_TIMEZONE),
        (Schema.decimal_of(10, 2), SqlType.DOUBLE),
        (Schema.of(SchemaType.INT), SqlType.OTHER),
    ], ids=lambda v: v.name if isinstance(v, SqlType) else v.display_name)
    def test_incompatible(self, schema, sql_type):
        assert not is_type_compatible(schema, sql_type)

    def test_unsigned_widening(self):
        assert is_type_compatible(Schema.of(SchemaType.LONG), SqlType.INTEGER, signed=False)
        assert not is_type_compatible(Schema.of(SchemaType.LONG), SqlType.INTEGER, signed=True)
        assert is_type_compatible(Schema.decimal_of(20, 0), SqlType.BIGINT, signed=False)

    def test_deferring_override_leaves_generic_table_in_charge(self, mocker):
        """LONG against TIMESTAMP stays incompatible when the profile has no opinion"""
        override = mocker.Mock(return_value=None)
        profile = DialectProfile('deferring', compatibility_override=override)
        field = Field('x', Schema.of(SchemaType.LONG))
        column = Column('x', SqlType.TIMESTAMP)

        assert not is_field_compatible(field, column, profile)
        override.assert_called_once_with(field, column)

        failures = validate_fields(Schema.record_of('r', [field]), [column], profile)
        assert [f.kind for f in failures] == [FailureKind.TYPE_MISMATCH]
        assert override.call_count == 2


class TestFieldCompatibility:
    """Profile overrides answer before the generic table."""

    def test_override_true_wins(self, make_column):
        profile = DialectProfile('test', compatibility_override=lambda f, c: True)
        field = Field('x', Schema.of(SchemaType.LONG))
        assert is_field_compatible(field, make_column('x', SqlType.TIMESTAMP), profile)

    def test_override_false_wins(self, make_column):
        profile = DialectProfile('test', compatibility_override=lambda f, c: False)
        field = Field('x', Schema.of(SchemaType.INT))
        assert not is_field_compatible(field, make_column('x', SqlType.INTEGER), profile)

    def test_none_defers(self, make_column):
        profile = DialectProfile('test', compatibility_override=lambda f, c: None)
        field = Field('x', Schema.of(SchemaType.INT))
        assert is_field_compatible(field, make_column('x', SqlType.INTEGER), profile)

    def test_override_sees_non_nullable_field(self, make_column, mocker):
        override = mocker.Mock(return_value=None)
        profile = DialectProfile('test', compatibility_override=override)
        field = Field('x', Schema.of(SchemaType.INT).to_nullable())
        is_field_compatible(field, make_column('x', SqlType.INTEGER), profile)
        passed_field = override.call_args.args[0]
        assert passed_field.name == 'x'
        assert not passed_field.schema.nullable

    def test_tinyint_boolean_needs_the_override(self, make_column):
        field = Field('active', Schema.of(SchemaType.BOOLEAN))
        column = make_column('active', SqlType.TINYINT, 'TINYINT')
        assert not is_field_compatible(field, column)
        assert is_field_compatible(field, column, get_profile('memsql'))


class TestValidateFields:
    """One pass reports every problem for a schema/table pair."""

    def test_matching_schema_has_no_failures(self, person_schema, person_columns):
        collector = FailureCollector()
        assert validate_fields(person_schema, person_columns, collector=collector) == []
        assert not collector

    def test_type_mismatch(self, person_schema):
        columns = [
            Column('ID', SqlType.INTEGER, 'INTEGER', 0),
            Column('NAME', SqlType.VARCHAR, 'VARCHAR', 1),
            Column('SCORE', SqlType.VARCHAR, 'VARCHAR', 2),
        ]
        failures = validate_fields(person_schema, columns)
        assert len(failures) == 1
        failure = failures[0]
        assert failure.field == 'SCORE'
        assert failure.kind is FailureKind.TYPE_MISMATCH
        assert "'double'" in failure.message
        assert "'VARCHAR'" in failure.message

    def test_missing_field(self, person_schema, person_columns):
        failures = validate_fields(person_schema, person_columns[:2])
        assert len(failures) == 1
        assert failures[0].field == 'SCORE'
        assert failures[0].kind is FailureKind.MISSING_FIELD
        assert 'does not exist' in failures[0].message

    def test_collects_every_failure(self, person_schema):
        columns = [Column('ID', SqlType.TIMESTAMP, 'TIMESTAMP', 0)]
        collector = FailureCollector()
        failures = validate_fields(person_schema, columns, collector=collector,
                                   attribute=CauseAttribute.OUTPUT_SCHEMA_FIELD)
        assert [f.field for f in failures] == ['ID', 'NAME', 'SCORE']
        assert [f.kind for f in failures] == [FailureKind.TYPE_MISMATCH,
                                              FailureKind.MISSING_FIELD,
                                              FailureKind.MISSING_FIELD]
        assert all(f.attribute is CauseAttribute.OUTPUT_SCHEMA_FIELD for f in failures)
        assert len(collector) == 3

    def test_collector_accumulates_across_passes(self, person_schema, person_columns):
        collector = FailureCollector()
        validate_fields(person_schema, person_columns[:1], collector=collector)
        validate_fields(person_schema, person_columns[:2], collector=collector)
        assert len(collector) == 3

    def test_vendor_code_label(self, person_schema):
        columns = [Column('ID', -155, '', 0)]
        failures = validate_fields(person_schema, columns)
        assert "'-155'" in failures[0].message

    def test_nullability_checked_only_on_request(self):
        schema = Schema.record_of('r', [Field('id', Schema.of(SchemaType.INT).to_nullable())])
        columns = [Column('id', SqlType.INTEGER, 'INTEGER', 0, nullable=False)]
        assert validate_fields(schema, columns) == []
        failures = validate_fields(schema, columns, check_nullability=True)
        assert len(failures) == 1
        assert failures[0].kind is FailureKind.NULLABILITY_MISMATCH

    def test_nullable_column_accepts_non_nullable_field(self, person_schema):
        columns = [
            Column('ID', SqlType.INTEGER, 'INTEGER', 0, nullable=True),
            Column('NAME', SqlType.VARCHAR, 'VARCHAR', 1, nullable=True),
            Column('SCORE', SqlType.DOUBLE, 'DOUBLE', 2, nullable=True),
        ]
        assert validate_fields(person_schema, columns, check_nullability=True) == []

    def test_get_or_raise(self, person_schema, person_columns):
        collector = FailureCollector()
        validate_fields(person_schema, person_columns[:1], collector=collector)
        with pytest.raises(SchemaValidationError) as exc_info:
            collector.get_or_raise()
        assert [f.field for f in exc_info.value.failures] == ['NAME', 'SCORE']
        assert '2 schema validation failure(s)' in str(exc_info.value)

    def test_get_or_raise_is_silent_without_failures(self):
        FailureCollector().get_or_raise()

    def test_failure_to_dict(self, person_schema, person_columns):
        failure = validate_fields(person_schema, person_columns[:2])[0]
        data = failure.to_dict()
        assert data['field'] == 'SCORE'
        assert data['attribute'] == 'inputSchemaField'
        assert data['kind'] == 'missing_field'
        assert data['corrective_action'] == "Remove field 'SCORE' from the schema."


if __name__ == '__main__':
    __import__('pytest').main([__file__])
