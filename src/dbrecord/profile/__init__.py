"""
Dialect profile registry.

Every dialect module registers its profile on import; the core modules
never import a dialect, they receive a profile from the caller.
"""
from functools import lru_cache

import sqlalchemy as sa
from dbrecord.profile.base import _PROFILE_REGISTRY, GENERIC, UNHANDLED
from dbrecord.profile.base import DialectProfile as DialectProfile
from dbrecord.profile.base import register_profile as register_profile
from dbrecord.profile.db2 import DB2 as DB2
from dbrecord.profile.memsql import MEMSQL as MEMSQL
from dbrecord.profile.mysql import MYSQL as MYSQL
from dbrecord.profile.netezza import NETEZZA as NETEZZA
from dbrecord.profile.oracle import ORACLE as ORACLE
from dbrecord.profile.postgres import POSTGRES as POSTGRES
from dbrecord.profile.redshift import REDSHIFT as REDSHIFT
from dbrecord.profile.saphana import SAPHANA as SAPHANA
from dbrecord.profile.sqlite import SQLITE as SQLITE
from dbrecord.profile.sqlserver import SQLSERVER as SQLSERVER

__all__ = [
    'DialectProfile',
    'GENERIC',
    'UNHANDLED',
    'get_profile',
    'get_profile_for_url',
    'get_available_dialects',
    'is_supported_dialect',
    'register_profile',
]


def _validate_dialect(dialect: str) -> None:
    """Raise ValueError if dialect is not registered."""
    if dialect not in _PROFILE_REGISTRY:
        available = list(_PROFILE_REGISTRY.keys())
        raise ValueError(f'Unsupported dialect: {dialect}. Available: {available}')


@lru_cache(maxsize=32)
def _get_profile(dialect: str) -> DialectProfile:
    """Get cached profile for a dialect name."""
    _validate_dialect(dialect)
    return _PROFILE_REGISTRY[dialect]


def get_profile(dialect: 'str | DialectProfile | None' = None) -> DialectProfile:
    """Get the profile for a dialect name or alias.

    A profile passed in is returned as is; None gives the generic profile.
    """
    if dialect is None:
        return GENERIC
    if isinstance(dialect, DialectProfile):
        return dialect
    return _get_profile(dialect.lower())


def get_profile_for_url(url: 'str | sa.URL') -> DialectProfile:
    """Get the profile for the backend of a SQLAlchemy URL."""
    return get_profile(sa.make_url(url).get_backend_name())


def get_available_dialects() -> list[str]:
    """Return list of registered dialect names and aliases."""
    return list(_PROFILE_REGISTRY.keys())


def is_supported_dialect(dialect: str) -> bool:
    """Check if a dialect is supported."""
    return dialect in _PROFILE_REGISTRY
