"""
IBM DB2 profile.

DECFLOAT is reported as OTHER and identified by its type name.
"""
import functools

from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.adapters.type_conversion import to_decimal, to_float, to_str
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, Schema, SchemaType
from dbrecord.sql import build_merge_upsert, quote_identifier

DECFLOAT_TYPE_NAME = 'DECFLOAT'


def _is_decfloat(column: Column) -> bool:
    return column.type_code == SqlType.OTHER and column.has_type_name(DECFLOAT_TYPE_NAME)


def db2_schema(column: Column) -> Schema | None:
    if _is_decfloat(column):
        return Schema.of(SchemaType.DOUBLE)
    return None


def db2_compatibility(field: Field, column: Column) -> bool | None:
    if field.schema.is_type(SchemaType.STRING) and (column.type_code == SqlType.OTHER
                                                    or column.has_type_name(DECFLOAT_TYPE_NAME)):
        return True
    if field.schema.is_type(SchemaType.DOUBLE) and _is_decfloat(column):
        return True
    return None


def db2_read(value, field: Field, column: Column):
    if not _is_decfloat(column):
        return UNHANDLED
    if value is None:
        return None
    if field.schema.non_nullable().is_type(SchemaType.STRING):
        return to_str(to_decimal(value))
    return to_float(value)


DB2 = register_profile(
    DialectProfile(
        'db2',
        schema_override=db2_schema,
        compatibility_override=db2_compatibility,
        read_override=db2_read,
        escape=functools.partial(quote_identifier, dialect='db2'),
        upsert_builder=functools.partial(build_merge_upsert, source_suffix=' FROM SYSIBM.SYSDUMMY1'),
        ))
