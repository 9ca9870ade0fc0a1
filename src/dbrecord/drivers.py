"""
Reference-counted registry of database engines.

Every unit of work acquires a `DriverHandle` for its database URL and
releases it when done. The first acquire of a URL creates a SQLAlchemy
engine; the last release disposes it. Connections are never pooled across
units: each `handle.connect()` opens a fresh DB-API connection and closes it
on every exit path.

Usage:
    with acquire_driver('sqlite:///example.db') as handle:
        with handle.connect() as cn:
            ...
"""
import atexit
import contextlib
import logging
import threading
from collections.abc import Callable, Iterator
from typing import Any, Self

import sqlalchemy as sa
from dbrecord.adapters.type_conversion import register_sqlite_adapters
from dbrecord.exceptions import DbConnectionError, ResourceAcquisitionError
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

logger = logging.getLogger(__name__)

__all__ = [
    'DriverHandle',
    'DriverRegistry',
    'acquire_driver',
    'dispose_all_drivers',
]


def _registry_key(url: 'str | sa.URL') -> str:
    return sa.make_url(url).render_as_string(hide_password=False)


def _display_url(url: 'str | sa.URL') -> str:
    return sa.make_url(url).render_as_string(hide_password=True)


class DriverHandle:
    """One acquisition of a registered engine.

    Releasing is idempotent; a released handle cannot open connections.
    """

    def __init__(self, registry: 'DriverRegistry', key: str, engine: Engine) -> None:
        self._registry = registry
        self._key = key
        self.engine = engine
        self.released = False

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @property
    def url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)

    @contextlib.contextmanager
    def connect(self) -> Iterator[Any]:
        """Open a raw DB-API connection, closed when the block exits.
        """
        if self.released:
            raise ResourceAcquisitionError(f'Driver handle for {self.url} was already released')
        if self.dialect == 'sqlite':
            register_sqlite_adapters()
        try:
            connection = self.engine.raw_connection()
        except (sa.exc.SQLAlchemyError, *DbConnectionError) as e:
            raise ResourceAcquisitionError(f'Unable to connect to {self.url}: {e}') from e
        logger.debug(f'Opened connection to {self.url}')
        try:
            yield connection
        finally:
            connection.close()
            logger.debug(f'Closed connection to {self.url}')

    def release(self) -> None:
        """Give the engine back to the registry."""
        if self.released:
            return
        self.released = True
        self._registry._release(self._key)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.release()

    def __repr__(self) -> str:
        state = 'released' if self.released else 'active'
        return f'DriverHandle({self.url!r}, {state})'


class DriverRegistry:
    """Thread-safe, reference-counted engines keyed by URL.
    """

    def __init__(self, engine_factory: Callable[..., Engine] = sa.create_engine) -> None:
        self._engine_factory = engine_factory
        self._lock = threading.RLock()
        self._engines: dict[str, Engine] = {}
        self._counts: dict[str, int] = {}

    def acquire(self, url: 'str | sa.URL', **engine_kwargs: Any) -> DriverHandle:
        """Acquire a handle on the engine for a URL, creating it if needed.

        Args:
            url: SQLAlchemy database URL
            engine_kwargs: Extra arguments for engine creation, used only by
                the acquire that creates the engine

        Returns
            DriverHandle that must be released

        Raises
            ResourceAcquisitionError: when the URL is invalid or the engine
                cannot be created
        """
        try:
            key = _registry_key(url)
        except (sa.exc.ArgumentError, ValueError) as e:
            raise ResourceAcquisitionError(f'Invalid database URL: {e}') from e

        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                try:
                    engine = self._engine_factory(url, poolclass=NullPool, **engine_kwargs)
                except (sa.exc.SQLAlchemyError, ImportError) as e:
                    raise ResourceAcquisitionError(
                        f'Unable to create engine for {_display_url(url)}: {e}') from e
                self._engines[key] = engine
                self._counts[key] = 0
                logger.debug(f'Created engine for {_display_url(url)}')
            self._counts[key] += 1
            return DriverHandle(self, key, engine)

    def _release(self, key: str) -> None:
        with self._lock:
            if key not in self._counts:
                return
            self._counts[key] -= 1
            if self._counts[key] > 0:
                return
            engine = self._engines.pop(key)
            del self._counts[key]
        engine.dispose()
        logger.debug(f'Disposed engine for {_display_url(key)}')

    def reference_count(self, url: 'str | sa.URL') -> int:
        """Number of unreleased handles for a URL."""
        with self._lock:
            return self._counts.get(_registry_key(url), 0)

    def dispose_all(self) -> None:
        """Dispose every engine regardless of outstanding handles.
        """
        with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
            self._counts.clear()
        for engine in engines:
            engine.dispose()
        logger.debug(f'Disposed {len(engines)} engines')

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)


_default_registry = DriverRegistry()


def acquire_driver(url: 'str | sa.URL', **engine_kwargs: Any) -> DriverHandle:
    """Acquire a handle from the process-wide registry."""
    return _default_registry.acquire(url, **engine_kwargs)


def dispose_all_drivers() -> None:
    _default_registry.dispose_all()


atexit.register(dispose_all_drivers)
