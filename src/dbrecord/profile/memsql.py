"""
MemSQL (SingleStore) profile.

BOOLEAN columns are stored as TINYINT(1), so a BOOLEAN field is accepted
against a TINYINT column and reads any positive value as true.
"""
import functools

from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.adapters.type_conversion import to_int
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, SchemaType
from dbrecord.sql import build_duplicate_key_upsert, quote_identifier


def _is_tinyint_boolean(field: Field, column: Column) -> bool:
    return (column.type_code == SqlType.TINYINT
            and field.schema.non_nullable().is_type(SchemaType.BOOLEAN))


def memsql_compatibility(field: Field, column: Column) -> bool | None:
    if _is_tinyint_boolean(field, column):
        return True
    return None


def memsql_read(value, field: Field, column: Column):
    if _is_tinyint_boolean(field, column):
        return None if value is None else to_int(value) > 0
    return UNHANDLED


MEMSQL = register_profile(
    DialectProfile(
        'memsql',
        compatibility_override=memsql_compatibility,
        read_override=memsql_read,
        escape=functools.partial(quote_identifier, dialect='memsql'),
        upsert_builder=build_duplicate_key_upsert,
        placeholder='%s',
        ),
    'singlestore')
