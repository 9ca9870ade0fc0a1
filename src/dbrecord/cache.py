"""
Caching for destination table metadata.

A write unit inspects its destination table before the first row moves.
Units writing to the same table reuse that inspection until it expires, so
a long run of small units does not reflect the table over and over. Keys
are built from the engine URL, the table name and any further arguments;
table names are kept as given since some databases compare them
case-sensitively.
"""
import functools
import logging
import threading
from collections.abc import Hashable

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Process-wide registry of named TTL caches.
    """

    _instance = None
    _lock = threading.RLock()

    def __init__(self):
        self._caches: dict[str, cachetools.TTLCache] = {}

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create the TTL cache registered under a name.

        Size and expiry only apply when the cache is first created.
        """
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return cache

    def clear_all(self) -> None:
        """Empty every registered cache."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()


def _metadata_key(engine, table: str, args: tuple, kwargs: dict) -> tuple[Hashable, ...]:
    url = getattr(engine, 'url', None)
    where = url.render_as_string(hide_password=True) if url is not None else id(engine)
    return where, table, tuple(repr(arg) for arg in args), tuple(sorted(
        (name, repr(value)) for name, value in kwargs.items()))


def cacheable_metadata(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Cache a ``(engine, table, *args, **kwargs)`` metadata lookup.

    Pass ``bypass_cache=True`` to the decorated function to inspect again;
    the fresh result replaces the cached one.

    Args:
        cache_name: Name of the cache the results are kept in
        ttl: Seconds a result stays valid
        maxsize: Maximum number of cached tables
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(engine, table, *args, bypass_cache=False, **kwargs):
            cache = Cache.get_instance().get_cache(cache_name, maxsize=maxsize, ttl=ttl)
            key = _metadata_key(engine, table, args, kwargs)
            if not bypass_cache:
                with Cache._lock:
                    found = cache.get(key)
                if found is not None:
                    logger.debug(f'Reusing cached {cache_name} for {table}')
                    return found

            result = func(engine, table, *args, **kwargs)
            with Cache._lock:
                cache[key] = result
            logger.debug(f'Cached {cache_name} for {table}')
            return result

        return wrapper
    return decorator
