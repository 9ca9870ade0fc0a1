"""
Column metadata abstraction across database backends.

Every driver reports result and table columns differently. This module
normalizes them to `Column` values carrying a standard SQL type code
(`SqlType`), the driver's own type name, ordinal index, precision, scale,
signed-ness and nullability.
"""
import datetime
import decimal
import logging
import uuid
from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Any, Self

import sqlalchemy as sa
from dbrecord.cache import cacheable_metadata
from psycopg.postgres import types as pg_types

logger = logging.getLogger(__name__)

__all__ = [
    'SqlType',
    'Column',
    'columns_from_cursor_description',
    'columns_from_metadata',
    'columns_from_table',
]


class SqlType(IntEnum):
    """Standard SQL type codes as reported by drivers."""
    BIT = -7
    TINYINT = -6
    SMALLINT = 5
    INTEGER = 4
    BIGINT = -5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    NUMERIC = 2
    DECIMAL = 3
    CHAR = 1
    VARCHAR = 12
    LONGVARCHAR = -1
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    BINARY = -2
    VARBINARY = -3
    LONGVARBINARY = -4
    NULL = 0
    OTHER = 1111
    JAVA_OBJECT = 2000
    DISTINCT = 2001
    STRUCT = 2002
    ARRAY = 2003
    BLOB = 2004
    CLOB = 2005
    REF = 2006
    DATALINK = 70
    BOOLEAN = 16
    ROWID = -8
    NCHAR = -15
    NVARCHAR = -9
    LONGNVARCHAR = -16
    NCLOB = 2011
    SQLXML = 2009
    REF_CURSOR = 2012
    TIME_WITH_TIMEZONE = 2013
    TIMESTAMP_WITH_TIMEZONE = 2014


NUMERIC_CODES = frozenset({SqlType.NUMERIC, SqlType.DECIMAL})


@dataclass(frozen=True)
class Column:
    """Metadata for one result or destination column.

    `type_code` is usually a `SqlType` member, but dialects may report
    vendor codes outside the standard set, so plain ints are kept as-is.
    `index` is the zero-based ordinal position in the row.
    """
    name: str
    type_code: int
    type_name: str = ''
    index: int = 0
    precision: int | None = None
    scale: int | None = None
    signed: bool = True
    nullable: bool | None = None

    @property
    def sql_type(self) -> SqlType | None:
        """Standard type for the code, or None for vendor codes."""
        try:
            return SqlType(self.type_code)
        except ValueError:
            return None

    def has_type_name(self, *names: str) -> bool:
        """Case-insensitive match of the driver type name."""
        current = (self.type_name or '').lower()
        return any(current == name.lower() for name in names)

    def __repr__(self) -> str:
        code = self.sql_type.name if self.sql_type is not None else self.type_code
        return f'Column(name={self.name!r}, type={code}, type_name={self.type_name!r})'

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization.
        """
        data = asdict(self)
        data['type_code'] = int(self.type_code)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int | None = None) -> Self:
        """Create a Column from a plain metadata mapping.

        Accepts the type code as an int or a `SqlType` name.
        """
        type_code = data.get('type_code', SqlType.OTHER)
        if isinstance(type_code, str):
            type_code = SqlType[type_code.upper()]
        return cls(
            name=data['name'],
            type_code=type_code,
            type_name=data.get('type_name') or '',
            index=data.get('index', index or 0),
            precision=data.get('precision'),
            scale=data.get('scale'),
            signed=data.get('signed', True),
            nullable=data.get('nullable'),
            )

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        """Get column names from a list of Column objects.
        """
        return [col.name for col in columns]


def columns_from_metadata(items: list[dict[str, Any]]) -> list[Column]:
    """Create Columns from an ordered list of metadata mappings.
    """
    return [Column.from_dict(item, index=i) for i, item in enumerate(items)]


# PostgreSQL: psycopg reports OIDs, map them to standard codes
_PG_NAME_CODES = {
    'bool': SqlType.BOOLEAN,
    'bit': SqlType.BIT,
    'varbit': SqlType.OTHER,
    'int2': SqlType.SMALLINT,
    'int4': SqlType.INTEGER,
    'int8': SqlType.BIGINT,
    'oid': SqlType.BIGINT,
    'float4': SqlType.REAL,
    'float8': SqlType.DOUBLE,
    'numeric': SqlType.NUMERIC,
    'money': SqlType.DOUBLE,
    'char': SqlType.CHAR,
    'bpchar': SqlType.CHAR,
    'varchar': SqlType.VARCHAR,
    'text': SqlType.VARCHAR,
    'name': SqlType.VARCHAR,
    'date': SqlType.DATE,
    'time': SqlType.TIME,
    'timetz': SqlType.TIME,
    'timestamp': SqlType.TIMESTAMP,
    'timestamptz': SqlType.TIMESTAMP,
    'bytea': SqlType.BINARY,
    'xml': SqlType.SQLXML,
    'json': SqlType.OTHER,
    'jsonb': SqlType.OTHER,
    'uuid': SqlType.OTHER,
    'interval': SqlType.OTHER,
    'inet': SqlType.OTHER,
    'cidr': SqlType.OTHER,
    'macaddr': SqlType.OTHER,
    }

postgres_types: dict[int, tuple[SqlType, str]] = {}
for _name, _code in _PG_NAME_CODES.items():
    _info = pg_types.get(_name)
    if _info is None:
        continue
    postgres_types[_info.oid] = (_code, _info.name)
    if _info.array_oid:
        postgres_types[_info.array_oid] = (SqlType.ARRAY, f'_{_info.name}')


def _extract_postgres_column(item: Any, index: int) -> Column:
    type_code, type_name = postgres_types.get(item.type_code, (SqlType.OTHER, ''))
    precision = getattr(item, 'precision', None)
    if type_code in NUMERIC_CODES and precision is None:
        # unconstrained numeric
        precision = 0
    return Column(
        name=item.name,
        type_code=type_code,
        type_name=type_name,
        index=index,
        precision=precision,
        scale=getattr(item, 'scale', None),
        nullable=getattr(item, 'null_ok', None),
        )


def _extract_sqlite_column(item: Any, index: int) -> Column:
    # sqlite3 only reports column names for result sets
    return Column(name=item[0], type_code=SqlType.OTHER, type_name='', index=index)


def _description_fields(item: Any) -> tuple[Any, Any, Any]:
    """Precision, scale and nullability of a DB-API 7-tuple."""
    return (item[4] if len(item) > 4 else None,
            item[5] if len(item) > 5 else None,
            item[6] if len(item) > 6 else None)


# MySQL protocol field types, shared by pymysql, mysqlclient and SingleStore
mysql_types: dict[int, tuple[SqlType, str]] = {
    0: (SqlType.DECIMAL, 'DECIMAL'),
    1: (SqlType.TINYINT, 'TINYINT'),
    2: (SqlType.SMALLINT, 'SMALLINT'),
    3: (SqlType.INTEGER, 'INT'),
    4: (SqlType.REAL, 'FLOAT'),
    5: (SqlType.DOUBLE, 'DOUBLE'),
    6: (SqlType.NULL, 'NULL'),
    7: (SqlType.TIMESTAMP, 'TIMESTAMP'),
    8: (SqlType.BIGINT, 'BIGINT'),
    9: (SqlType.INTEGER, 'MEDIUMINT'),
    10: (SqlType.DATE, 'DATE'),
    11: (SqlType.TIME, 'TIME'),
    12: (SqlType.TIMESTAMP, 'DATETIME'),
    13: (SqlType.DATE, 'YEAR'),
    14: (SqlType.DATE, 'DATE'),
    15: (SqlType.VARCHAR, 'VARCHAR'),
    16: (SqlType.BIT, 'BIT'),
    245: (SqlType.LONGVARCHAR, 'JSON'),
    246: (SqlType.DECIMAL, 'DECIMAL'),
    247: (SqlType.CHAR, 'ENUM'),
    248: (SqlType.CHAR, 'SET'),
    249: (SqlType.LONGVARBINARY, 'TINYBLOB'),
    250: (SqlType.LONGVARBINARY, 'MEDIUMBLOB'),
    251: (SqlType.LONGVARBINARY, 'LONGBLOB'),
    252: (SqlType.LONGVARBINARY, 'BLOB'),
    253: (SqlType.VARCHAR, 'VARCHAR'),
    254: (SqlType.CHAR, 'CHAR'),
    255: (SqlType.BINARY, 'GEOMETRY'),
    }


def _extract_mysql_column(item: Any, index: int) -> Column:
    type_code, type_name = mysql_types.get(item[1], (SqlType.OTHER, str(item[1])))
    length, scale, nullable = _description_fields(item)
    if type_code in NUMERIC_CODES:
        # display length counts the sign and the decimal point
        precision = length - 1 - (1 if scale else 0) if length else 0
    elif type_code in {SqlType.TIME, SqlType.TIMESTAMP, SqlType.DATE}:
        precision, scale = None, None
    else:
        precision, scale = length, None
    return Column(
        name=item[0],
        type_code=type_code,
        type_name=type_name,
        index=index,
        precision=precision,
        scale=scale,
        nullable=nullable,
        )


# oracledb reports DbType objects, keyed here by their name
oracle_types: dict[str, tuple[int, str]] = {
    'DB_TYPE_NUMBER': (SqlType.NUMERIC, 'NUMBER'),
    'DB_TYPE_BINARY_INTEGER': (SqlType.INTEGER, 'BINARY_INTEGER'),
    'DB_TYPE_BINARY_FLOAT': (100, 'BINARY_FLOAT'),
    'DB_TYPE_BINARY_DOUBLE': (101, 'BINARY_DOUBLE'),
    'DB_TYPE_BOOLEAN': (SqlType.BOOLEAN, 'BOOLEAN'),
    'DB_TYPE_CHAR': (SqlType.CHAR, 'CHAR'),
    'DB_TYPE_NCHAR': (SqlType.NCHAR, 'NCHAR'),
    'DB_TYPE_VARCHAR': (SqlType.VARCHAR, 'VARCHAR2'),
    'DB_TYPE_NVARCHAR': (SqlType.NVARCHAR, 'NVARCHAR2'),
    'DB_TYPE_LONG': (SqlType.LONGVARCHAR, 'LONG'),
    'DB_TYPE_CLOB': (SqlType.CLOB, 'CLOB'),
    'DB_TYPE_NCLOB': (SqlType.NCLOB, 'NCLOB'),
    'DB_TYPE_RAW': (SqlType.VARBINARY, 'RAW'),
    'DB_TYPE_LONG_RAW': (SqlType.LONGVARBINARY, 'LONG RAW'),
    'DB_TYPE_BLOB': (SqlType.BLOB, 'BLOB'),
    'DB_TYPE_BFILE': (-13, 'BFILE'),
    'DB_TYPE_DATE': (SqlType.TIMESTAMP, 'DATE'),
    'DB_TYPE_TIMESTAMP': (SqlType.TIMESTAMP, 'TIMESTAMP'),
    'DB_TYPE_TIMESTAMP_TZ': (-101, 'TIMESTAMP WITH TIME ZONE'),
    'DB_TYPE_TIMESTAMP_LTZ': (-102, 'TIMESTAMP WITH LOCAL TIME ZONE'),
    'DB_TYPE_INTERVAL_YM': (-103, 'INTERVAL YEAR TO MONTH'),
    'DB_TYPE_INTERVAL_DS': (-104, 'INTERVAL DAY TO SECOND'),
    'DB_TYPE_ROWID': (SqlType.ROWID, 'ROWID'),
    'DB_TYPE_UROWID': (SqlType.ROWID, 'UROWID'),
    }


def _extract_oracle_column(item: Any, index: int) -> Column:
    name = _driver_type_name(item[1])
    type_code, type_name = oracle_types.get(name, (SqlType.OTHER, name))
    precision, scale, nullable = _description_fields(item)
    if type_code == SqlType.NUMERIC and scale == -127:
        # NUMBER without precision, or FLOAT when precision is set
        type_name = 'FLOAT' if precision else type_name
        precision, scale = precision or 0, 0
    return Column(
        name=item[0],
        type_code=type_code,
        type_name=type_name,
        index=index,
        precision=precision,
        scale=scale,
        nullable=nullable,
        )


def _python_type_code(python_type: type, precision: int | None) -> tuple[SqlType, str]:
    """Standard code for a driver that reports Python types (pyodbc, teradatasql).
    """
    if issubclass(python_type, bool):
        return SqlType.BIT, 'bit'
    if issubclass(python_type, int):
        if precision and precision > 10:
            return SqlType.BIGINT, 'bigint'
        return SqlType.INTEGER, 'int'
    if issubclass(python_type, float):
        if precision and precision <= 24:
            return SqlType.REAL, 'real'
        return SqlType.DOUBLE, 'float'
    if issubclass(python_type, decimal.Decimal):
        return SqlType.DECIMAL, 'decimal'
    if issubclass(python_type, datetime.datetime):
        return SqlType.TIMESTAMP, 'datetime'
    if issubclass(python_type, datetime.date):
        return SqlType.DATE, 'date'
    if issubclass(python_type, datetime.time):
        return SqlType.TIME, 'time'
    if issubclass(python_type, bytes | bytearray):
        return SqlType.VARBINARY, 'varbinary'
    if issubclass(python_type, uuid.UUID):
        return SqlType.CHAR, 'uniqueidentifier'
    if issubclass(python_type, str):
        return SqlType.VARCHAR, 'varchar'
    return SqlType.OTHER, python_type.__name__


def _driver_type_name(type_code: Any) -> str:
    name = getattr(type_code, 'name', None)
    return str(name if isinstance(name, str) else type_code)


def _extract_generic_column(item: Any, index: int) -> Column:
    type_code = item[1] if len(item) > 1 else None
    precision, scale, nullable = _description_fields(item)
    if isinstance(type_code, type):
        type_code, type_name = _python_type_code(type_code, precision)
        if type_code not in NUMERIC_CODES:
            scale = None
    elif isinstance(type_code, SqlType):
        type_name = ''
    else:
        # vendor codes only mean something to a profile matching on the name
        type_name = '' if type_code is None else _driver_type_name(type_code)
        type_code = SqlType.OTHER
    return Column(
        name=item[0],
        type_code=type_code,
        type_name=type_name,
        index=index,
        precision=precision,
        scale=scale,
        nullable=nullable,
        )


_EXTRACTORS = {
    'postgresql': _extract_postgres_column,
    'redshift': _extract_postgres_column,
    'sqlite': _extract_sqlite_column,
    'mysql': _extract_mysql_column,
    'mariadb': _extract_mysql_column,
    'singlestoredb': _extract_mysql_column,
    'memsql': _extract_mysql_column,
    'oracle': _extract_oracle_column,
    }


def columns_from_cursor_description(cursor: Any, dialect: str) -> list[Column]:
    """Create Column objects directly from a cursor description.

    Args:
        cursor: Database cursor with a description attribute
        dialect: SQLAlchemy dialect name of the connection. Drivers without
            a dedicated reader report either Python types, which are mapped,
            or vendor codes, which become OTHER with the code as type name

    Returns
        List of Column objects in result order
    """
    if cursor.description is None:
        return []
    extractor = _EXTRACTORS.get(dialect, _extract_generic_column)
    return [extractor(item, i) for i, item in enumerate(cursor.description)]


def _sqlalchemy_type_code(col_type: sa.types.TypeEngine) -> SqlType:
    """Map a reflected SQLAlchemy type to a standard type code.
    """
    visit_name = str(getattr(col_type, '__visit_name__', '')).upper()
    if visit_name == 'YEAR':
        return SqlType.DATE
    if isinstance(col_type, sa.Boolean):
        return SqlType.BOOLEAN
    if isinstance(col_type, sa.SmallInteger):
        return SqlType.TINYINT if visit_name == 'TINYINT' else SqlType.SMALLINT
    if isinstance(col_type, sa.BigInteger):
        return SqlType.BIGINT
    if isinstance(col_type, sa.Integer):
        return SqlType.INTEGER
    if isinstance(col_type, sa.Double):
        return SqlType.DOUBLE
    if isinstance(col_type, sa.REAL):
        return SqlType.REAL
    if isinstance(col_type, sa.Float):
        return SqlType.DOUBLE if 'DOUBLE' in visit_name else SqlType.FLOAT
    if isinstance(col_type, sa.Numeric):
        return SqlType.DECIMAL if visit_name == 'DECIMAL' else SqlType.NUMERIC
    if isinstance(col_type, sa.DateTime):
        if getattr(col_type, 'timezone', False):
            return SqlType.TIMESTAMP_WITH_TIMEZONE
        return SqlType.TIMESTAMP
    if isinstance(col_type, sa.Date):
        return SqlType.DATE
    if isinstance(col_type, sa.Time):
        if getattr(col_type, 'timezone', False):
            return SqlType.TIME_WITH_TIMEZONE
        return SqlType.TIME
    if isinstance(col_type, sa.LargeBinary):
        return SqlType.BLOB if visit_name == 'BLOB' else SqlType.LONGVARBINARY
    if isinstance(col_type, sa.BINARY | sa.VARBINARY):
        return SqlType.BINARY if visit_name == 'BINARY' else SqlType.VARBINARY
    if isinstance(col_type, sa.String):
        return {
            'CHAR': SqlType.CHAR,
            'NCHAR': SqlType.NCHAR,
            'NVARCHAR': SqlType.NVARCHAR,
            'TEXT': SqlType.LONGVARCHAR,
            'CLOB': SqlType.CLOB,
            'NTEXT': SqlType.LONGNVARCHAR,
            }.get(visit_name, SqlType.VARCHAR)
    return SqlType.OTHER


def _sqlalchemy_type_name(col_type: sa.types.TypeEngine) -> str:
    if isinstance(col_type, sa.types.NullType):
        return ''
    name = str(getattr(col_type, '__visit_name__', '')).upper()
    if getattr(col_type, 'unsigned', False):
        return f'{name} UNSIGNED'
    return name


@cacheable_metadata('table_columns', ttl=300)
def columns_from_table(engine: sa.Engine, table: str, schema: str | None = None) -> list[Column]:
    """Inspect a destination table and return its columns in table order.

    Results are cached per engine URL and table; pass ``bypass_cache=True``
    to force a fresh inspection.

    Args:
        engine: SQLAlchemy engine for the destination database
        table: Table name, unquoted
        schema: Optional schema name, unquoted

    Returns
        List of Column objects
    """
    inspector = sa.inspect(engine)
    columns = []
    for index, info in enumerate(inspector.get_columns(table, schema=schema)):
        col_type = info['type']
        columns.append(Column(
            name=info['name'],
            type_code=_sqlalchemy_type_code(col_type),
            type_name=_sqlalchemy_type_name(col_type),
            index=index,
            precision=getattr(col_type, 'precision', None) or getattr(col_type, 'length', None),
            scale=getattr(col_type, 'scale', None),
            signed=not getattr(col_type, 'unsigned', False),
            nullable=info.get('nullable'),
            ))
    logger.debug(f'Inspected {len(columns)} columns of {table}')
    return columns
