"""
Database Health - Cache Port.

============================================================
CACHE STORES
============================================================

The health engine keeps each database's load_pct for a
short time so health checks do not hammer the database.

Any object with these two methods can serve as the cache:
- read(key) -> value or None
- write(key, value, ttl)

Shipped stores:
- MemoryCache: Process-local, per-entry TTL (cachetools)
- RedisCache:  Shared across processes (redis)

Failures raise CacheError. The engine treats any exception
from read/write as a cache fault and fails open.

============================================================
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Callable, NamedTuple, Optional, Union
import threading
import time

import cachetools
import redis

from .exceptions import CacheError


TTL = Union[int, float, timedelta]


def _seconds(ttl: TTL) -> float:
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


class BaseCache(ABC):
    """Interface of the cache the health engine reads and writes."""

    @abstractmethod
    def read(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent or expired."""

    @abstractmethod
    def write(self, key: str, value: Any, ttl: TTL) -> None:
        """Store a value for ttl seconds."""


# =============================================================
# IN-PROCESS CACHE
# =============================================================


class _Entry(NamedTuple):
    value: Any
    ttl: float


class MemoryCache(BaseCache):
    """
    Process-local cache with a TTL per entry.

    Backed by a cachetools TLRUCache. Access is serialized
    with a lock since cachetools caches are not thread-safe.
    """

    def __init__(
        self,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize cache.

        Args:
            maxsize: Most entries kept before LRU eviction
            timer: Clock used for expiry
        """
        self._cache = cachetools.TLRUCache(
            maxsize=maxsize,
            ttu=self._expires_at,
            timer=timer,
        )
        self._lock = threading.Lock()

    @staticmethod
    def _expires_at(key: str, entry: _Entry, now: float) -> float:
        return now + entry.ttl

    def read(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
        if entry is None:
            return None
        return entry.value

    def write(self, key: str, value: Any, ttl: TTL) -> None:
        with self._lock:
            self._cache[key] = _Entry(value, _seconds(ttl))

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


# =============================================================
# REDIS CACHE
# =============================================================


class RedisCache(BaseCache):
    """
    Cache shared between processes through Redis.

    Values are stored as decimal strings with a millisecond
    expiry. Redis errors are raised as CacheError.
    """

    def __init__(self, client: redis.Redis, namespace: str = "") -> None:
        """
        Initialize cache.

        Args:
            client: Redis client
            namespace: Prefix added in front of every key
        """
        self._client = client
        self._namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "", **kwargs: Any) -> "RedisCache":
        """Create a cache from a redis:// URL."""
        return cls(redis.Redis.from_url(url, **kwargs), namespace=namespace)

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def read(self, key: str) -> Optional[float]:
        try:
            raw = self._client.get(self._key(key))
        except redis.RedisError as e:
            raise CacheError("read", key, e) from e

        if raw is None:
            return None

        try:
            return float(raw)
        except (TypeError, ValueError) as e:
            raise CacheError("read", key, e) from e

    def write(self, key: str, value: Any, ttl: TTL) -> None:
        expires_ms = max(1, int(_seconds(ttl) * 1000))
        try:
            self._client.set(self._key(key), repr(float(value)), px=expires_ms)
        except redis.RedisError as e:
            raise CacheError("write", key, e) from e
