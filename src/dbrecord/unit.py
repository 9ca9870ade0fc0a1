"""
Units of work: one partition read or one table write per connection.

Main entry points:
- `read_partition()` - Stream the records of one query partition
- `write_rows()` - Write records to a table in batches inside one transaction
- `read_table()`, `write_table()` - Drive the units described by ConnectorOptions

Every unit acquires its own connection from a DriverHandle and closes it on
every exit path. Schema problems are detected before the first row moves.
"""
import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import fields
from typing import TYPE_CHECKING, Any

from dbrecord.adapters.column_info import Column, columns_from_cursor_description
from dbrecord.adapters.column_info import columns_from_table
from dbrecord.adapters.type_mapping import DEFAULT_RECORD_NAME, infer_schema
from dbrecord.drivers import DriverHandle, acquire_driver
from dbrecord.failures import CauseAttribute, FailureCollector
from dbrecord.options import ConnectorOptions
from dbrecord.partition import CONDITIONS, Split, bind_conditions, fetch_bounds
from dbrecord.partition import split_ranges
from dbrecord.profile import get_profile
from dbrecord.record import Operation, read_record, write_record
from dbrecord.schema import Schema
from dbrecord.sql import build_insert_sql, build_update_sql, quote_table
from dbrecord.validation import validate_fields
from more_itertools import chunked

from libb import load_options

if TYPE_CHECKING:
    from dbrecord.profile.base import DialectProfile

logger = logging.getLogger(__name__)

__all__ = [
    'describe_query',
    'read_partition',
    'plan_splits',
    'write_rows',
    'build_write_sql',
    'load_connector_options',
    'read_table',
    'write_table',
]


def _empty_result_query(query: str) -> str:
    if CONDITIONS in query:
        return query.replace(CONDITIONS, '1 = 0')
    return f'SELECT * FROM ({query}) t WHERE 1 = 0'


def describe_query(handle: DriverHandle, query: str,
                   profile: 'DialectProfile | None' = None,
                   name: str = DEFAULT_RECORD_NAME) -> Schema:
    """Infer the record schema of a query without reading any rows.
    """
    profile = get_profile(profile)
    with handle.connect() as cn:
        cursor = cn.cursor()
        try:
            cursor.execute(_empty_result_query(query))
            columns = columns_from_cursor_description(cursor, handle.dialect)
        finally:
            cursor.close()
    return infer_schema(columns, profile, name)


def read_partition(handle: DriverHandle, query: str,
                   profile: 'DialectProfile | None' = None,
                   schema: Schema | None = None, fetch_size: int = 1000,
                   params: Sequence[Any] = ()) -> Iterator[Mapping[str, Any]]:
    """Stream the records of one partition query.

    A declared schema is validated against the result columns before the
    first row is read; without one the schema is inferred from the result.

    Args:
        handle: Driver handle the connection is opened from
        query: Partition query with its conditions already bound
        profile: Dialect profile, generic when None
        schema: Declared record schema
        fetch_size: Rows fetched per round trip
        params: Positional query parameters

    Returns
        Iterator of records keyed by field name

    Raises
        SchemaValidationError: when the declared schema does not match
    """
    profile = get_profile(profile)
    with handle.connect() as cn:
        cursor = cn.cursor()
        try:
            cursor.arraysize = fetch_size
            cursor.execute(query, tuple(params))
            columns = columns_from_cursor_description(cursor, handle.dialect)
            if schema is None:
                schema = infer_schema(columns, profile)
            else:
                collector = FailureCollector()
                validate_fields(schema, columns, profile, collector,
                                attribute=CauseAttribute.OUTPUT_SCHEMA_FIELD)
                collector.get_or_raise()

            count = 0
            while rows := cursor.fetchmany(fetch_size):
                for row in rows:
                    yield read_record(row, schema, columns, profile)
                count += len(rows)
            logger.debug(f'Read {count} records from partition')
        finally:
            cursor.close()


def plan_splits(handle: DriverHandle, bounding_query: str, num_splits: int,
                include_nulls: bool = False) -> list[Split]:
    """Fetch the split column bounds and cut them into splits."""
    with handle.connect() as cn:
        lower, upper = fetch_bounds(cn, bounding_query)
    return split_ranges(lower, upper, num_splits, include_nulls)


def build_write_sql(table: str, column_names: Sequence[str], profile: 'DialectProfile',
                    operation: Operation = Operation.INSERT,
                    key_fields: Sequence[str] = (), schema_name: str | None = None) -> str:
    """Statement text for writing one record with the given operation.
    """
    table_sql = quote_table(table, schema_name, profile.escape)
    match operation:
        case Operation.INSERT:
            return build_insert_sql(table_sql, column_names, profile.escape, profile.placeholder)
        case Operation.UPDATE:
            return build_update_sql(table_sql, column_names, key_fields, profile.escape,
                                    profile.placeholder)
        case Operation.UPSERT:
            if profile.upsert_builder is None:
                raise ValueError(f'{profile.id} does not support upsert')
            if not key_fields:
                raise ValueError('UPSERT requires at least one key field')
            return profile.upsert_builder(table_sql, column_names, key_fields, profile.escape,
                                          profile.placeholder)
    raise ValueError(f'Unsupported operation {operation}')


def _destination_columns(schema: Schema, columns: list[Column]) -> list[Column]:
    by_name = {column.name: column for column in columns}
    return [by_name[name] for name in schema.field_names if name in by_name]


def write_rows(handle: DriverHandle, table: str, records: Iterable[Mapping[str, Any]],
               schema: Schema, profile: 'DialectProfile | None' = None,
               operation: Operation = Operation.INSERT, key_fields: Sequence[str] = (),
               batch_size: int = 1000, schema_name: str | None = None) -> int:
    """Write records to a table in one transaction.

    The input schema is validated against the destination table first,
    including nullability. Rows are converted a batch at a time and a
    conversion or driver error rolls back every batch of the unit.

    Returns
        Number of records written
    """
    profile = get_profile(profile)
    operation = Operation(operation)
    table_columns = columns_from_table(handle.engine, table, schema_name)

    collector = FailureCollector()
    validate_fields(schema, table_columns, profile, collector,
                    attribute=CauseAttribute.INPUT_SCHEMA_FIELD, check_nullability=True)
    collector.get_or_raise()

    columns = _destination_columns(schema, table_columns)
    sql = build_write_sql(table, Column.get_names(columns), profile, operation, key_fields,
                          schema_name)
    logger.debug(f'Writing to {table} with: {sql}')

    count = 0
    with handle.connect() as cn:
        cursor = cn.cursor()
        try:
            for batch in chunked(records, batch_size):
                params = [write_record(record, schema, columns, profile, operation,
                                       key_fields, sql).parameters()
                          for record in batch]
                cursor.executemany(sql, params)
                count += len(params)
            cn.commit()
        except Exception:
            cn.rollback()
            logger.debug(f'Rolled back write to {table} after {count} records')
            raise
        finally:
            cursor.close()

    logger.debug(f'Wrote {count} records to {table}')
    return count


@load_options(cls=ConnectorOptions)
def load_connector_options(options: ConnectorOptions | dict[str, Any] | str,
                           config: Any | None = None, **kw: Any) -> ConnectorOptions:
    """Resolve connector options

    Args:
        options: Can be:
                - ConnectorOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        ConnectorOptions
    """
    if isinstance(options, ConnectorOptions):
        for field in fields(options):
            kw.pop(field.name, None)
        return options
    options_func = load_options(cls=ConnectorOptions)(lambda o, c: o)
    return options_func(options, config, **kw)


def read_table(options: ConnectorOptions) -> Any:
    """Read every partition described by the options.

    Partitions are read one after another, each as its own unit with its own
    connection.

    Returns
        Records shaped by the options' data loader
    """
    profile = options.profile
    with acquire_driver(options.url) as handle:
        schema = options.record_schema or describe_query(handle, options.query, profile)
        if options.num_splits > 1:
            splits = plan_splits(handle, options.bounding_query, options.num_splits,
                                 options.include_nulls)
        else:
            splits = [None]

        records = []
        for split in splits:
            if split is None and CONDITIONS not in options.query:
                query, params = options.query, ()
            else:
                query, params = bind_conditions(options.query, options.split_by, split,
                                                profile.placeholder)
            records.extend(read_partition(handle, query, profile, schema,
                                          options.fetch_size, params))
        logger.debug(f'Read {len(records)} records in {len(splits)} partitions')
    return options.data_loader(records, schema)


def write_table(options: ConnectorOptions, records: Iterable[Mapping[str, Any]],
                schema: Schema | None = None) -> int:
    """Write records to the table described by the options.
    """
    schema = schema or options.record_schema
    if schema is None:
        raise ValueError('A record schema is required to write records')
    with acquire_driver(options.url) as handle:
        return write_rows(handle, options.table, records, schema, options.profile,
                          options.write_operation, options.key_fields, options.batch_size,
                          options.schema_name)
