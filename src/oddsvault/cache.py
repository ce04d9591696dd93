"""
Key/value cache used for single odds records.

The contract is deliberately small: ``get`` with an explicit hit/miss
indicator, ``set`` with a TTL and ``delete``. No scans, no partial keys and no
cross-key transactions. Adapters raise ``CacheError``; the service decides
what a failure means.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Callable, NamedTuple

import redis
import structlog

from .config import CACHE_BACKEND, CACHE_KEY_PREFIX, REDIS_URL
from .errors import CacheError
from .logging_config import performance_log

logger = structlog.get_logger(__name__)

HEALTH_CHECK_KEY = "health-check-key"


class CacheLookup(NamedTuple):
    hit: bool
    value: str | None = None


MISS = CacheLookup(False, None)


def odds_key(odds_id: int, prefix: str = CACHE_KEY_PREFIX) -> str:
    return f"{prefix}:{odds_id}"


class Cache(ABC):
    """Per-key atomic cache. Implementations must be safe for concurrent use."""

    name = "cache"

    @abstractmethod
    def get(self, key: str) -> CacheLookup: ...

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Return False when the key was absent."""


class RedisCache(Cache):
    name = "redis"

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str = REDIS_URL) -> "RedisCache":
        return cls(redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> CacheLookup:
        try:
            value = self.client.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"GET {key} failed: {exc}") from exc
        if value is None:
            return MISS
        return CacheLookup(True, value)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self.client.setex(key, ttl_seconds, value)
        except redis.RedisError as exc:
            raise CacheError(f"SET {key} failed: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            return self.client.delete(key) > 0
        except redis.RedisError as exc:
            raise CacheError(f"DEL {key} failed: {exc}") from exc


class InMemoryCache(Cache):
    """Process-local TTL cache for development and tests."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, str]] = {}

    def get(self, key: str) -> CacheLookup:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return MISS
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return MISS
            return CacheLookup(True, value)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise CacheError(f"TTL must be positive, got {ttl_seconds}")
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
        return entry is not None and self._clock() < entry[0]

    def __contains__(self, key: str) -> bool:
        return self.get(key).hit


class InstrumentedCache(Cache):
    """Wraps a cache with timing, hit/miss logging and counters."""

    def __init__(self, inner: Cache):
        self.inner = inner
        self.name = inner.name
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0, "errors": 0}

    def _count(self, field: str) -> None:
        with self._lock:
            self._stats[field] += 1

    def _timed(self, operation: str, key: str, call):
        start = time.perf_counter()
        try:
            result = call()
        except CacheError as exc:
            self._count("errors")
            logger.warning("cache_error", operation=operation, key=key, error=str(exc))
            raise
        duration_ms = round((time.perf_counter() - start) * 1000, 3)
        performance_log.debug("cache_operation", operation=operation, key=key, duration_ms=duration_ms)
        return result

    def get(self, key: str) -> CacheLookup:
        lookup = self._timed("GET", key, lambda: self.inner.get(key))
        if lookup.hit:
            self._count("hits")
            logger.debug("cache_hit", key=key)
        else:
            self._count("misses")
            logger.debug("cache_miss", key=key)
        return lookup

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._timed("SET", key, lambda: self.inner.set(key, value, ttl_seconds))
        self._count("sets")
        logger.debug("cache_set", key=key, ttl_seconds=ttl_seconds)

    def delete(self, key: str) -> bool:
        removed = self._timed("DELETE", key, lambda: self.inner.delete(key))
        if removed:
            self._count("deletes")
        logger.debug("cache_delete", key=key, removed=removed)
        return removed

    def stats(self) -> dict:
        with self._lock:
            stats = dict(self._stats)
        lookups = stats["hits"] + stats["misses"]
        stats["hit_rate"] = (stats["hits"] / lookups) if lookups else None
        return stats

    def reset_stats(self) -> None:
        with self._lock:
            for field in self._stats:
                self._stats[field] = 0


def build_cache(backend: str = CACHE_BACKEND, url: str = REDIS_URL) -> InstrumentedCache:
    if backend == "redis":
        inner: Cache = RedisCache.from_url(url)
    elif backend == "memory":
        inner = InMemoryCache()
    else:
        raise ValueError(f"Unknown cache backend: {backend!r}")
    logger.info("cache_initialized", backend=backend)
    return InstrumentedCache(inner)


@lru_cache(maxsize=1)
def get_cache() -> InstrumentedCache:
    return build_cache()


def cache_health(cache: Cache) -> dict:
    """Probe the cache with a single GET and report its state."""
    try:
        cache.get(HEALTH_CHECK_KEY)
        status = "UP"
    except CacheError as exc:
        logger.error("cache_health_check_failed", error=str(exc))
        status = "DOWN"
    health = {"status": status, "backend": cache.name}
    if isinstance(cache, InstrumentedCache):
        health["stats"] = cache.stats()
    return health
