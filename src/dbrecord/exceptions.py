"""
Exception classes for type mapping and record marshalling.
"""
import sqlite3

import psycopg


class DatabaseError(Exception):
    """Base class for all dbrecord errors.
    """


class UnsupportedTypeError(DatabaseError):
    """A driver column type has no universal type mapping.

    Fatal for the unit of work: no schema can be produced without a
    dialect change.
    """

    def __init__(self, type_code, type_name: str | None = None, column: str | None = None):
        self.type_code = type_code
        self.type_name = type_name
        self.column = column
        where = f' for column {column!r}' if column else ''
        super().__init__(f'Unsupported SQL type {type_code} ({type_name or "unknown"}){where}')


class SchemaValidationError(DatabaseError):
    """A declared schema does not match the actual columns.

    Carries every collected failure, not only the first.
    """

    def __init__(self, failures: list):
        self.failures = list(failures)
        details = '; '.join(f.message for f in self.failures)
        super().__init__(f'{len(self.failures)} schema validation failure(s): {details}')


class RowConversionError(DatabaseError):
    """A single field of a row could not be read or written.
    """

    def __init__(self, message: str, field: str | None = None, column: str | None = None):
        self.field = field
        self.column = column
        super().__init__(message)


class ResourceAcquisitionError(DatabaseError):
    """Driver or connection acquisition failed.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    ResourceAcquisitionError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    )
