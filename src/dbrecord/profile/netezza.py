"""
Netezza profile.

INTERVAL columns use the vendor type code 101 and are read as strings.
"""
import functools

from dbrecord.adapters.column_info import Column
from dbrecord.adapters.type_conversion import to_str
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, Schema, SchemaType
from dbrecord.sql import quote_identifier

INTERVAL = 101


def netezza_schema(column: Column) -> Schema | None:
    if column.type_code == INTERVAL:
        return Schema.of(SchemaType.STRING)
    return None


def netezza_compatibility(field: Field, column: Column) -> bool | None:
    if column.type_code == INTERVAL:
        return field.schema.is_type(SchemaType.STRING)
    return None


def netezza_read(value, field: Field, column: Column):
    if column.type_code == INTERVAL:
        return None if value is None else to_str(value)
    return UNHANDLED


NETEZZA = register_profile(
    DialectProfile(
        'netezza',
        schema_override=netezza_schema,
        compatibility_override=netezza_compatibility,
        read_override=netezza_read,
        escape=functools.partial(quote_identifier, dialect='netezza'),
        ))
