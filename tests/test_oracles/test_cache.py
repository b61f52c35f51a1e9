"""
TTL Cache Tests.

Uses an injectable clock so expiry is deterministic.
"""

import pytest

from releasegate.oracles.cache import TTLCache


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return _Clock()


class TestTTLCache:
    def test_get_before_expiry(self, clock):
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")
        clock.now += 9.9
        assert cache.get("k") == "v"
        assert cache.hits == 1

    def test_expired_entry_is_gone(self, clock):
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")
        clock.now += 10
        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.misses == 1

    def test_per_entry_ttl(self, clock):
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("short", 1, ttl_seconds=1)
        cache.set("long", 2)
        clock.now += 5
        assert "short" not in cache
        assert "long" in cache

    def test_last_write_wins(self, clock):
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("k", "first")
        cache.set("k", "second")
        assert cache.get("k") == "second"
        assert len(cache) == 1

    def test_oldest_evicted_when_full(self, clock):
        cache = TTLCache(ttl_seconds=10, max_entries=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_purge_expired(self, clock):
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        clock.now += 5
        cache.set("b", 2)
        clock.now += 6
        assert cache.purge_expired() == 1
        assert cache.get("b") == 2

    def test_delete_and_clear(self, clock):
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_stats(self, clock):
        cache = TTLCache(ttl_seconds=10, clock=clock, name="histories")
        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")
        stats = cache.stats()
        assert stats["name"] == "histories"
        assert stats["size"] == 1
        assert (stats["hits"], stats["misses"]) == (1, 1)

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=0)
