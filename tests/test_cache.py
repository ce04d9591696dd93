from unittest import mock

import pytest
import redis

from oddsvault.cache import (
    MISS, CacheLookup, InMemoryCache, InstrumentedCache, RedisCache, build_cache, cache_health, odds_key,
)
from oddsvault.errors import CacheError


class Ticker:
    def __init__(self):
        self.t = 100.0

    def __call__(self):
        return self.t


def test_odds_key_is_namespaced():
    assert odds_key(12) == "odds:12"
    assert odds_key(12, prefix="staging-odds") == "staging-odds:12"


def test_in_memory_get_set_delete():
    cache = InMemoryCache()
    assert cache.get("odds:1") == MISS

    cache.set("odds:1", "payload", 60)
    assert cache.get("odds:1") == CacheLookup(True, "payload")

    assert cache.delete("odds:1") is True
    assert cache.delete("odds:1") is False
    assert cache.get("odds:1").hit is False


def test_in_memory_hit_is_explicit_even_for_empty_value():
    cache = InMemoryCache()
    cache.set("k", "", 60)
    assert cache.get("k") == CacheLookup(True, "")


def test_in_memory_ttl_expiry():
    ticker = Ticker()
    cache = InMemoryCache(clock=ticker)
    cache.set("k", "v", 10)

    ticker.t += 9.9
    assert cache.get("k").hit
    ticker.t += 0.2
    assert not cache.get("k").hit
    assert cache.delete("k") is False


def test_in_memory_rejects_non_positive_ttl():
    with pytest.raises(CacheError):
        InMemoryCache().set("k", "v", 0)


def test_redis_cache_maps_client_calls():
    client = mock.Mock(spec=redis.Redis)
    client.get.side_effect = [None, "snapshot"]
    client.delete.side_effect = [1, 0]
    cache = RedisCache(client)

    assert cache.get("odds:1") == MISS
    assert cache.get("odds:1") == CacheLookup(True, "snapshot")
    cache.set("odds:1", "snapshot", 1800)
    client.setex.assert_called_once_with("odds:1", 1800, "snapshot")
    assert cache.delete("odds:1") is True
    assert cache.delete("odds:1") is False


@pytest.mark.parametrize("method, args", [
    ("get", ("odds:1",)),
    ("set", ("odds:1", "v", 10)),
    ("delete", ("odds:1",)),
])
def test_redis_errors_become_cache_errors(method, args):
    client = mock.Mock(spec=redis.Redis)
    for name in ("get", "setex", "delete"):
        getattr(client, name).side_effect = redis.ConnectionError("connection refused")
    cache = RedisCache(client)

    with pytest.raises(CacheError):
        getattr(cache, method)(*args)


def test_instrumented_cache_counts_operations():
    cache = InstrumentedCache(InMemoryCache())

    cache.get("odds:1")
    cache.set("odds:1", "v", 60)
    cache.get("odds:1")
    cache.get("odds:1")
    cache.delete("odds:1")
    cache.delete("odds:1")

    stats = cache.stats()
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["sets"] == 1
    assert stats["deletes"] == 1
    assert stats["hit_rate"] == pytest.approx(2 / 3)

    cache.reset_stats()
    assert cache.stats()["hits"] == 0
    assert cache.stats()["hit_rate"] is None


def test_instrumented_cache_counts_and_reraises_errors():
    client = mock.Mock(spec=redis.Redis)
    client.get.side_effect = redis.TimeoutError("timeout")
    cache = InstrumentedCache(RedisCache(client))

    with pytest.raises(CacheError):
        cache.get("odds:1")
    assert cache.stats()["errors"] == 1
    assert cache.stats()["misses"] == 0


def test_cache_health_up_and_down():
    assert cache_health(InstrumentedCache(InMemoryCache()))["status"] == "UP"

    client = mock.Mock(spec=redis.Redis)
    client.get.side_effect = redis.ConnectionError("down")
    health = cache_health(InstrumentedCache(RedisCache(client)))
    assert health["status"] == "DOWN"
    assert health["backend"] == "redis"
    assert health["stats"]["errors"] == 1


def test_build_cache_backends():
    assert isinstance(build_cache("memory").inner, InMemoryCache)
    with mock.patch("oddsvault.cache.redis.from_url") as from_url:
        cache = build_cache("redis", "redis://cache:6379/1")
    from_url.assert_called_once_with("redis://cache:6379/1", decode_responses=True)
    assert isinstance(cache.inner, RedisCache)
    with pytest.raises(ValueError):
        build_cache("memcached")
