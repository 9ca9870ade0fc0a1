"""
Column metadata fixtures.

Provides factories for `Column` metadata as drivers would report it, and the
small ID/NAME/SCORE table used throughout the validation tests.

Usage:
    def test_something(make_column):
        column = make_column('amount', SqlType.NUMERIC, 'NUMERIC', precision=10, scale=2)
"""
import pytest
from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.schema import Field, Schema, SchemaType


def _make_column(name, type_code, type_name='', index=0, **kwargs):
    return Column(name=name, type_code=type_code, type_name=type_name, index=index, **kwargs)


@pytest.fixture
def make_column():
    """Factory for a single Column."""
    return _make_column


@pytest.fixture
def person_columns():
    """ID INTEGER, NAME VARCHAR, SCORE DOUBLE in result order."""
    return [
        _make_column('ID', SqlType.INTEGER, 'INTEGER', 0),
        _make_column('NAME', SqlType.VARCHAR, 'VARCHAR', 1),
        _make_column('SCORE', SqlType.DOUBLE, 'DOUBLE', 2),
    ]


@pytest.fixture
def person_schema():
    """Declared schema matching person_columns."""
    return Schema.record_of('person', [
        Field('ID', Schema.of(SchemaType.INT)),
        Field('NAME', Schema.of(SchemaType.STRING)),
        Field('SCORE', Schema.of(SchemaType.DOUBLE)),
    ])
