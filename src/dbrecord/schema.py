"""
Universal type model for records exchanged with any database dialect.

A `Schema` is a tagged variant over the physical types in `SchemaType`,
optionally refined by a `LogicalType` that is always carried by a fixed
underlying physical type:

    DATE             -> INT
    TIME_MILLIS      -> INT
    TIME_MICROS      -> LONG
    TIMESTAMP_MILLIS -> LONG
    TIMESTAMP_MICROS -> LONG
    DECIMAL          -> BYTES (with precision and scale)
    DATETIME         -> STRING (zone-less local date-time)

Nullability is a flag orthogonal to the tag. Schemas are immutable and
shared by reference across every row of a run.

The JSON exchange format is a tree of {type, logicalType?, nullable?} nodes
with named fields at record level; Avro-style ["null", X] unions are also
accepted when parsing.
"""
import json
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Self

import pyarrow as pa

logger = logging.getLogger(__name__)

__all__ = [
    'SchemaType',
    'LogicalType',
    'Field',
    'Schema',
    'parse_schema',
    'to_arrow_schema',
]


class SchemaType(Enum):
    """Physical universal types."""
    NULL = 'null'
    BOOLEAN = 'boolean'
    INT = 'int'
    LONG = 'long'
    FLOAT = 'float'
    DOUBLE = 'double'
    BYTES = 'bytes'
    STRING = 'string'
    ARRAY = 'array'
    RECORD = 'record'


class LogicalType(Enum):
    """Semantic refinements of a physical type."""
    DATE = 'date'
    TIME_MILLIS = 'time-millis'
    TIME_MICROS = 'time-micros'
    TIMESTAMP_MILLIS = 'timestamp-millis'
    TIMESTAMP_MICROS = 'timestamp-micros'
    DECIMAL = 'decimal'
    DATETIME = 'datetime'


LOGICAL_BASE_TYPES: dict[LogicalType, SchemaType] = {
    LogicalType.DATE: SchemaType.INT,
    LogicalType.TIME_MILLIS: SchemaType.INT,
    LogicalType.TIME_MICROS: SchemaType.LONG,
    LogicalType.TIMESTAMP_MILLIS: SchemaType.LONG,
    LogicalType.TIMESTAMP_MICROS: SchemaType.LONG,
    LogicalType.DECIMAL: SchemaType.BYTES,
    LogicalType.DATETIME: SchemaType.STRING,
    }

TIME_TYPES = frozenset({LogicalType.TIME_MILLIS, LogicalType.TIME_MICROS})
TIMESTAMP_TYPES = frozenset({LogicalType.TIMESTAMP_MILLIS, LogicalType.TIMESTAMP_MICROS})


@dataclass(frozen=True, slots=True)
class Field:
    """Named element of a record schema."""
    name: str
    schema: 'Schema'

    def __repr__(self) -> str:
        return f'Field({self.name!r}, {self.schema.display_name})'


@dataclass(frozen=True, slots=True)
class Schema:
    """Immutable universal type.

    Build instances through the factory classmethods rather than the
    constructor so logical types always sit on their physical base type.
    """
    type: SchemaType
    logical_type: LogicalType | None = None
    precision: int | None = None
    scale: int | None = None
    items: 'Schema | None' = None
    fields: tuple[Field, ...] = ()
    name: str | None = None
    nullable: bool = False

    @classmethod
    def of(cls, schema_type: SchemaType) -> Self:
        """Create a schema for a primitive physical type.
        """
        if schema_type in {SchemaType.ARRAY, SchemaType.RECORD}:
            raise ValueError(f'Use array_of/record_of to build {schema_type.value} schemas')
        return cls(type=schema_type)

    @classmethod
    def of_logical(cls, logical_type: LogicalType) -> Self:
        """Create a schema for a logical type on its physical base type.
        """
        if logical_type is LogicalType.DECIMAL:
            raise ValueError('Use decimal_of to build decimal schemas')
        return cls(type=LOGICAL_BASE_TYPES[logical_type], logical_type=logical_type)

    @classmethod
    def decimal_of(cls, precision: int, scale: int = 0) -> Self:
        """Create a DECIMAL(precision, scale) schema.

        Args:
            precision: Total number of significant digits, at least 1
            scale: Digits after the decimal point, between 0 and precision

        Returns
            Decimal schema over BYTES
        """
        if precision is None or precision < 1:
            raise ValueError(f'Invalid precision {precision!r}: precision must be at least 1')
        if scale is None or scale < 0 or scale > precision:
            raise ValueError(f'Invalid scale {scale!r} for precision {precision}')
        return cls(type=SchemaType.BYTES, logical_type=LogicalType.DECIMAL,
                   precision=precision, scale=scale)

    @classmethod
    def array_of(cls, items: 'Schema') -> Self:
        return cls(type=SchemaType.ARRAY, items=items)

    @classmethod
    def record_of(cls, name: str, fields: list[Field] | tuple[Field, ...]) -> Self:
        """Create a RECORD schema with uniquely named, ordered fields.
        """
        seen = set()
        for field in fields:
            if field.name in seen:
                raise ValueError(f'Duplicate field name {field.name!r} in record {name!r}')
            seen.add(field.name)
        return cls(type=SchemaType.RECORD, fields=tuple(fields), name=name)

    @classmethod
    def nullable_of(cls, schema: 'Schema') -> Self:
        return schema.to_nullable()

    def to_nullable(self) -> 'Schema':
        return self if self.nullable else replace(self, nullable=True)

    def non_nullable(self) -> 'Schema':
        """Return the schema with nullability stripped."""
        return replace(self, nullable=False) if self.nullable else self

    def get_field(self, name: str) -> Field | None:
        """Find a record field by name."""
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def is_type(self, schema_type: SchemaType) -> bool:
        """True for the plain physical type, without a logical refinement."""
        return self.type is schema_type and self.logical_type is None

    @property
    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]

    @property
    def is_decimal(self) -> bool:
        return self.logical_type is LogicalType.DECIMAL

    @property
    def is_time(self) -> bool:
        return self.logical_type in TIME_TYPES

    @property
    def is_timestamp(self) -> bool:
        return self.logical_type in TIMESTAMP_TYPES

    @property
    def display_name(self) -> str:
        """Human readable type name used in failure messages.
        """
        if self.is_decimal:
            name = f'decimal({self.precision},{self.scale})'
        elif self.logical_type is not None:
            name = self.logical_type.value
        elif self.type is SchemaType.ARRAY:
            name = f'array<{self.items.display_name}>'
        elif self.type is SchemaType.RECORD:
            name = f'record<{self.name}>'
        else:
            name = self.type.value
        return f'{name}?' if self.nullable else name

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON exchange structure.
        """
        node: dict[str, Any] = {'type': self.type.value}
        if self.logical_type is not None:
            node['logicalType'] = self.logical_type.value
        if self.is_decimal:
            node['precision'] = self.precision
            node['scale'] = self.scale
        if self.type is SchemaType.ARRAY:
            node['items'] = self.items.to_dict()
        if self.type is SchemaType.RECORD:
            node['name'] = self.name
            node['fields'] = [{'name': f.name, 'type': f.schema.to_dict()} for f in self.fields]
        if self.nullable:
            node['nullable'] = True
        return node

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_dict(cls, node: Any) -> Self:
        """Build a schema from the JSON exchange structure.

        Accepts a bare type name ('int'), a node dict, or an Avro-style union
        list containing 'null' and exactly one other branch.
        """
        if isinstance(node, str):
            return cls.of(_parse_enum(SchemaType, node))

        if isinstance(node, list):
            branches = [b for b in node if b != 'null']
            if len(branches) != 1:
                raise ValueError(f'Only nullable unions are supported, got {node!r}')
            inner = cls.from_dict(branches[0])
            return inner.to_nullable() if 'null' in node else inner

        if not isinstance(node, dict) or 'type' not in node:
            raise ValueError(f'Invalid schema node: {node!r}')

        if isinstance(node['type'], list | dict):
            inner = cls.from_dict(node['type'])
            return inner.to_nullable() if node.get('nullable') else inner

        schema_type = _parse_enum(SchemaType, node['type'])
        logical = node.get('logicalType')
        if logical is not None:
            logical_type = _parse_enum(LogicalType, logical)
            if logical_type is LogicalType.DECIMAL:
                schema = cls.decimal_of(node.get('precision'), node.get('scale', 0))
            else:
                schema = cls.of_logical(logical_type)
            if schema.type is not schema_type:
                raise ValueError(f'Logical type {logical} must be carried by '
                                 f'{schema.type.value}, not {schema_type.value}')
        elif schema_type is SchemaType.ARRAY:
            schema = cls.array_of(cls.from_dict(node['items']))
        elif schema_type is SchemaType.RECORD:
            fields = [Field(f['name'], cls.from_dict(f['type'])) for f in node.get('fields', [])]
            schema = cls.record_of(node.get('name') or 'record', fields)
        else:
            schema = cls.of(schema_type)

        return schema.to_nullable() if node.get('nullable') else schema


def _parse_enum(enum_cls: type[Enum], value: str) -> Any:
    try:
        return enum_cls(value.lower())
    except (ValueError, AttributeError) as e:
        raise ValueError(f'Unknown {enum_cls.__name__} {value!r}') from e


def parse_schema(text: str | dict) -> Schema:
    """Parse a schema from JSON text or an already decoded structure.
    """
    node = json.loads(text) if isinstance(text, str) else text
    return Schema.from_dict(node)


_ARROW_PRIMITIVES = {
    SchemaType.NULL: pa.null(),
    SchemaType.BOOLEAN: pa.bool_(),
    SchemaType.INT: pa.int32(),
    SchemaType.LONG: pa.int64(),
    SchemaType.FLOAT: pa.float32(),
    SchemaType.DOUBLE: pa.float64(),
    SchemaType.BYTES: pa.binary(),
    SchemaType.STRING: pa.string(),
    }

_ARROW_LOGICAL = {
    LogicalType.DATE: pa.date32(),
    LogicalType.TIME_MILLIS: pa.time32('ms'),
    LogicalType.TIME_MICROS: pa.time64('us'),
    LogicalType.TIMESTAMP_MILLIS: pa.timestamp('ms', tz='UTC'),
    LogicalType.TIMESTAMP_MICROS: pa.timestamp('us', tz='UTC'),
    LogicalType.DATETIME: pa.timestamp('us'),
    }


def to_arrow_type(schema: Schema) -> pa.DataType:
    """Map a universal type to the equivalent Arrow data type.
    """
    if schema.is_decimal:
        if schema.precision <= 38:
            return pa.decimal128(schema.precision, schema.scale)
        return pa.decimal256(schema.precision, schema.scale)
    if schema.logical_type is not None:
        return _ARROW_LOGICAL[schema.logical_type]
    if schema.type is SchemaType.ARRAY:
        return pa.list_(to_arrow_type(schema.items))
    if schema.type is SchemaType.RECORD:
        return pa.struct([pa.field(f.name, to_arrow_type(f.schema), nullable=f.schema.nullable)
                          for f in schema.fields])
    return _ARROW_PRIMITIVES[schema.type]


def to_arrow_schema(schema: Schema) -> pa.Schema:
    """Convert a RECORD schema into an Arrow schema.
    """
    if schema.type is not SchemaType.RECORD:
        raise ValueError(f'Expected a record schema, got {schema.display_name}')
    return pa.schema([pa.field(f.name, to_arrow_type(f.schema), nullable=f.schema.nullable)
                      for f in schema.fields])
