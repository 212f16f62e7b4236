"""
Tests for the TTL cache.
"""

import time

import pytest

from conftest import FakeClock
from gitplatform.utils.cache import TTLCache


class TestExpiry:

    def test_value_expires_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=300, clock=clock)
        cache.set("k", "v", ttl=0.1)
        assert cache.get("k") == "v"

        clock.advance(0.15)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_expiry_with_real_clock(self):
        cache = TTLCache()
        cache.set("k", "v", ttl=0.1)
        time.sleep(0.15)
        assert cache.get("k") is None

    def test_default_ttl(self):
        clock = FakeClock()
        cache = TTLCache(default_ttl=5, clock=clock)
        cache.set("k", 1)
        clock.advance(5)
        assert cache.get("k") == 1
        clock.advance(0.01)
        assert cache.get("k") is None

    def test_purge_expired(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=10)
        clock.advance(2)

        assert cache.purge_expired() == 1
        assert cache.get_stats()["keys"] == ["long"]

    def test_get_default(self):
        cache = TTLCache()
        sentinel = object()
        assert cache.get("missing", sentinel) is sentinel

    def test_invalid_ttl(self):
        with pytest.raises(ValueError):
            TTLCache().set("k", 1, ttl=0)


class TestTags:

    def test_clear_by_tags_removes_intersecting_entries(self):
        cache = TTLCache()
        cache.set("a", 1, tags=["x"])
        cache.set("b", 2, tags=["y", "z"])
        cache.set("c", 3, tags=["z"])
        cache.set("d", 4)

        assert cache.clear_by_tags(["z"]) == 2
        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") is None
        assert cache.get("d") == 4

    def test_single_string_tag(self):
        cache = TTLCache()
        cache.set("a", 1, tags="issues:o/r")
        assert cache.clear_by_tags("issues:o/r") == 1

    @pytest.mark.parametrize("tags", [[""], [None], [1]])
    def test_malformed_tags(self, tags):
        cache = TTLCache()
        with pytest.raises(ValueError):
            cache.set("a", 1, tags=tags)
        assert len(cache) == 0


class TestCapacity:

    def test_evicts_oldest_inserted_key(self):
        cache = TTLCache(max_size=3)
        for key in ("a", "b", "c"):
            cache.set(key, key)

        # Reading does not refresh insertion order.
        assert cache.get("a") == "a"
        cache.set("d", "d")

        assert cache.get("a") is None
        assert [cache.get(k) for k in ("b", "c", "d")] == ["b", "c", "d"]
        assert len(cache) == 3

    def test_overwrite_does_not_evict(self):
        cache = TTLCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert len(cache) == 2
        assert cache.get("a") == 10
        assert cache.get("b") == 2

        # "a" kept its original insertion position.
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2


class TestStats:

    def test_hits_and_misses(self):
        cache = TTLCache(max_size=10)
        cache.set("a", 1)
        cache.get("a")
        cache.get("a")
        cache.get("b")

        stats = cache.get_stats()
        assert stats["size"] == 1
        assert stats["max_size"] == 10
        assert stats["keys"] == ["a"]
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(2 / 3)

    def test_clear(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0

    def test_contains_does_not_touch_stats(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("none", None, ttl=1)
        cache.set("gone", 1, ttl=1)
        clock.advance(0.5)
        assert "none" in cache
        assert "missing" not in cache

        clock.advance(1)
        assert "gone" not in cache
        assert len(cache) == 2
        assert cache.hits == 0
        assert cache.misses == 0
