"""
SAP HANA profile.

Text search and alphanumeric types are reported under vendor type names and
must be exchanged as strings. Spatial types are exchanged as bytes.
"""
import functools
import logging

from dbrecord.adapters.column_info import Column
from dbrecord.adapters.type_conversion import to_bytes, to_str
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, Schema, SchemaType
from dbrecord.sql import build_merge_upsert, quote_identifier

logger = logging.getLogger(__name__)

STRING_MAPPED_TYPE_NAMES = frozenset({'ALPHANUM', 'SHORTTEXT', 'TEXT', 'BINTEXT'})
BYTES_MAPPED_TYPE_NAMES = frozenset({'ST_GEOMETRY', 'ST_POINT'})


def _type_name(column: Column) -> str:
    return (column.type_name or '').upper()


def saphana_schema(column: Column) -> Schema | None:
    name = _type_name(column)
    if name in STRING_MAPPED_TYPE_NAMES:
        return Schema.of(SchemaType.STRING)
    if name in BYTES_MAPPED_TYPE_NAMES:
        return Schema.of(SchemaType.BYTES)
    return None


def saphana_compatibility(field: Field, column: Column) -> bool | None:
    name = _type_name(column)
    if name in STRING_MAPPED_TYPE_NAMES:
        if field.schema.is_type(SchemaType.STRING):
            return True
        logger.error(f"Field '{field.name}' was given as type '{field.schema.display_name}' but must be "
                     f"of type 'string' for the SAP HANA column of {column.type_name} type")
        return False
    if name in BYTES_MAPPED_TYPE_NAMES:
        return field.schema.is_type(SchemaType.BYTES)
    return None


def saphana_read(value, field: Field, column: Column):
    name = _type_name(column)
    if name in STRING_MAPPED_TYPE_NAMES:
        return None if value is None else to_str(value)
    if name in BYTES_MAPPED_TYPE_NAMES:
        return None if value is None else to_bytes(value)
    return UNHANDLED


SAPHANA = register_profile(
    DialectProfile(
        'saphana',
        schema_override=saphana_schema,
        compatibility_override=saphana_compatibility,
        read_override=saphana_read,
        escape=functools.partial(quote_identifier, dialect='saphana'),
        upsert_builder=functools.partial(build_merge_upsert, source_suffix=' FROM DUMMY'),
        ),
    'hana')
