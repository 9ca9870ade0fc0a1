"""
MySQL profile, shared by MariaDB, Aurora MySQL and Cloud SQL for MySQL.

- YEAR columns are reported with the DATE type code but carry only a year;
  they map to INT so a sink does not truncate them to a date.
- MEDIUMINT UNSIGNED fits in INT although it is reported as unsigned
  INTEGER.
"""
import datetime
import functools

from dbrecord.adapters.column_info import Column, SqlType
from dbrecord.adapters.type_conversion import to_int
from dbrecord.profile.base import UNHANDLED, DialectProfile, register_profile
from dbrecord.schema import Field, Schema, SchemaType
from dbrecord.sql import build_duplicate_key_upsert, quote_identifier

YEAR_TYPE_NAME = 'YEAR'
MEDIUMINT_UNSIGNED_TYPE_NAME = 'MEDIUMINT UNSIGNED'


def _is_year(column: Column) -> bool:
    return column.type_code == SqlType.DATE and column.has_type_name(YEAR_TYPE_NAME)


def _is_mediumint_unsigned(column: Column) -> bool:
    return column.type_code == SqlType.INTEGER and column.has_type_name(MEDIUMINT_UNSIGNED_TYPE_NAME)


def mysql_schema(column: Column) -> Schema | None:
    if _is_year(column) or _is_mediumint_unsigned(column):
        return Schema.of(SchemaType.INT)
    return None


def mysql_compatibility(field: Field, column: Column) -> bool | None:
    if field.schema.is_type(SchemaType.INT) and (_is_year(column) or _is_mediumint_unsigned(column)):
        return True
    return None


def mysql_read(value, field: Field, column: Column):
    if _is_year(column) and field.schema.non_nullable().is_type(SchemaType.INT):
        if value is None:
            return None
        if isinstance(value, datetime.date):
            return value.year
        return to_int(value)
    return UNHANDLED


MYSQL = register_profile(
    DialectProfile(
        'mysql',
        schema_override=mysql_schema,
        compatibility_override=mysql_compatibility,
        read_override=mysql_read,
        escape=functools.partial(quote_identifier, dialect='mysql'),
        upsert_builder=build_duplicate_key_upsert,
        placeholder='%s',
        ),
    'mariadb', 'aurora_mysql', 'cloudsql_mysql')
