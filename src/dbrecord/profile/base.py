"""
Dialect profile: the bundle of override hooks for one database product.

A profile is a plain immutable value holding four independent override
functions. The generic catalog, validator and marshaller call each override
first and fall back to their own default when it has no opinion:

- ``schema_override(column) -> Schema | None``
- ``compatibility_override(field, column) -> bool | None``
- ``read_override(value, field, column) -> value | UNHANDLED``
- ``write_override(statement, index, field, column, value) -> None | UNHANDLED``

Read and write overrides use the `UNHANDLED` sentinel rather than None since
None is a legitimate field value. A profile never depends on another profile.
"""
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from dbrecord.sql import quote_identifier

if TYPE_CHECKING:
    from dbrecord.adapters.column_info import Column
    from dbrecord.schema import Field, Schema

logger = logging.getLogger(__name__)


class _Unhandled:
    """Sentinel returned by read/write overrides that have no opinion."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'UNHANDLED'

    def __bool__(self) -> bool:
        return False


UNHANDLED = _Unhandled()

# Registry of dialect name -> profile
# Defined here to avoid circular imports (dialect modules import from base)
_PROFILE_REGISTRY: dict[str, 'DialectProfile'] = {}


@dataclass(frozen=True)
class DialectProfile:
    """Override hooks for one dialect.

    Args:
        id: Dialect tag the profile is registered under
        schema_override: Claims a column's universal type before the generic table
        compatibility_override: Decides field/column compatibility before the generic table
        read_override: Owns conversion of a raw driver value into a field value
        write_override: Owns binding of a field value on a statement
        escape: Quotes a table or schema identifier
        upsert_builder: Builds the dialect's UPSERT statement text
        placeholder: Positional parameter marker of the dialect's driver
    """
    id: str
    schema_override: Callable[['Column'], 'Schema | None'] | None = None
    compatibility_override: Callable[['Field', 'Column'], bool | None] | None = None
    read_override: Callable[[Any, 'Field', 'Column'], Any] | None = None
    write_override: Callable[..., Any] | None = None
    escape: Callable[[str], str] = functools.partial(quote_identifier, dialect='generic')
    upsert_builder: Callable[..., str] | None = None
    placeholder: str = '?'

    def infer_override(self, column: 'Column') -> 'Schema | None':
        if self.schema_override is None:
            return None
        return self.schema_override(column)

    def check_compatibility(self, field: 'Field', column: 'Column') -> bool | None:
        if self.compatibility_override is None:
            return None
        return self.compatibility_override(field, column)

    def read(self, value: Any, field: 'Field', column: 'Column') -> Any:
        if self.read_override is None:
            return UNHANDLED
        return self.read_override(value, field, column)

    def write(self, statement, index: int, field: 'Field', column: 'Column', value: Any) -> Any:
        if self.write_override is None:
            return UNHANDLED
        return self.write_override(statement, index, field, column, value)

    def __repr__(self) -> str:
        return f'DialectProfile({self.id!r})'


GENERIC = DialectProfile('generic')


def register_profile(profile: DialectProfile, *aliases: str) -> DialectProfile:
    """Register a profile under its id and any aliases.

    Usage:
        POSTGRES = register_profile(DialectProfile('postgresql', ...), 'postgres')
    """
    for name in (profile.id, *aliases):
        _PROFILE_REGISTRY[name] = profile
    return profile


register_profile(GENERIC)
