from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import pandas as pd
import pyarrow as pa
import sqlalchemy as sa
from dbrecord.partition import CONDITIONS
from dbrecord.profile import DialectProfile, get_available_dialects, get_profile
from dbrecord.profile import is_supported_dialect
from dbrecord.record import Operation
from dbrecord.schema import Schema, parse_schema, to_arrow_schema

from libb import ConfigOptions

__all__ = [
    'ConnectorOptions',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
]


def iterdict_data_loader(records, schema, **kwargs) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not records:
        return []
    return list(records)


def _column_types(schema: Schema) -> dict[str, dict[str, Any]]:
    return {field.name: field.schema.to_dict() for field in schema.fields}


def _empty_dataframe(schema: Schema) -> pd.DataFrame:
    """Create empty DataFrame with field metadata."""
    df = pd.DataFrame(columns=schema.field_names)
    df.attrs['column_types'] = _column_types(schema)
    return df


def pandas_numpy_data_loader(records, schema, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty
    results. The universal type of every column is kept in DataFrame.attrs.
    """
    records = list(records or [])
    if not records:
        return _empty_dataframe(schema)

    df = pd.DataFrame.from_records(records, columns=schema.field_names)
    df.attrs['column_types'] = _column_types(schema)
    return df


def pandas_pyarrow_data_loader(records, schema, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Columns take the Arrow type of their universal type, so decimals and UTC
    timestamps survive without conversion to float or naive datetime.
    """
    records = list(records or [])
    if not records:
        return _empty_dataframe(schema)

    table = pa.Table.from_pylist(records, schema=to_arrow_schema(schema))
    df = table.to_pandas(types_mapper=pd.ArrowDtype)
    df.attrs['column_types'] = _column_types(schema)
    return df


@dataclass
class ConnectorOptions(ConfigOptions):
    """Options

    Source options:
    - query: Import query, must contain $CONDITIONS when split
    - bounding_query: Query returning the min and max of split_by
    - split_by: Column the import query is split on
    - num_splits: Number of partitions to read (default: 1)
    - include_nulls: Also read rows whose split column is null
    - fetch_size: Rows fetched per round trip (default: 1000)

    Sink options:
    - table, schema_name: Destination table, optionally schema qualified
    - operation: `insert`, `update` or `upsert` (default: insert)
    - key_fields: Key columns for update and upsert
    - batch_size: Rows per executemany (default: 1000)

    The dialect defaults to the backend of `url`.
    """
    url: str = None
    dialect: str = None
    table: str = None
    schema_name: str = None
    query: str = None
    bounding_query: str = None
    split_by: str = None
    num_splits: int = 1
    include_nulls: bool = False
    fetch_size: int = 1000
    batch_size: int = 1000
    operation: str = 'insert'
    key_fields: Sequence[str] = None
    record_schema: Any = None
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if self.dialect is None and self.url:
            self.dialect = sa.make_url(self.url).get_backend_name()
        self.dialect = (self.dialect or 'generic').lower()
        if not is_supported_dialect(self.dialect):
            available = get_available_dialects()
            raise ValueError(f'dialect must be one of: {available}')

        try:
            self.operation = Operation(str(self.operation).lower()).value
        except ValueError:
            raise ValueError(f'operation must be one of: {[o.value for o in Operation]}') from None

        for name in ('num_splits', 'fetch_size', 'batch_size'):
            if getattr(self, name) is None or getattr(self, name) < 1:
                raise ValueError(f'{name} must be a positive integer')

        if self.num_splits > 1:
            if not self.query or CONDITIONS not in self.query:
                raise ValueError(f'query must contain {CONDITIONS} when num_splits > 1')
            if not self.split_by or not self.bounding_query:
                raise ValueError('split_by and bounding_query are required when num_splits > 1')

        self.key_fields = [self.key_fields] if isinstance(self.key_fields, str) else list(self.key_fields or [])
        if self.operation != Operation.INSERT.value and not self.key_fields:
            raise ValueError(f'key_fields are required for {self.operation}')
        if self.operation == Operation.UPSERT.value and self.profile.upsert_builder is None:
            raise ValueError(f'{self.dialect} does not support upsert')

        if isinstance(self.record_schema, str | dict):
            self.record_schema = parse_schema(self.record_schema)

        if self.data_loader is None:
            self.data_loader = iterdict_data_loader

    @property
    def profile(self) -> DialectProfile:
        return get_profile(self.dialect)

    @property
    def write_operation(self) -> Operation:
        return Operation(self.operation)
