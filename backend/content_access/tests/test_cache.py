"""
Tests for the clock-driven TTL cache.
"""

import pytest

from content_access.access.cache import TTLCache


@pytest.fixture
def cache(clock):
    return TTLCache(ttl_seconds=60, max_size=3, clock=clock)


class TestTTLCache:

    def test_get_returns_stored_value(self, cache):
        cache.set("delegates:s1", ("t1",))

        assert cache.get("delegates:s1") == ("t1",)
        assert cache.get("delegates:s2") is None
        assert cache.get("delegates:s2", default=()) == ()

    def test_entry_expires_at_ttl(self, cache, clock):
        cache.set("k", 1)

        clock.advance(seconds=59)
        assert cache.get("k") == 1

        clock.advance(seconds=1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_refreshes_timestamp(self, cache, clock):
        cache.set("k", 1)
        clock.advance(seconds=45)
        cache.set("k", 2)
        clock.advance(seconds=45)

        assert cache.get("k") == 2

    def test_full_cache_evicts_expired_first(self, cache, clock):
        cache.set("old", 1)
        clock.advance(seconds=61)
        cache.set("a", 2)
        cache.set("b", 3)

        cache.set("c", 4)

        assert cache.get("old") is None
        assert [cache.get(k) for k in ("a", "b", "c")] == [2, 3, 4]

    def test_full_cache_evicts_oldest(self, cache, clock):
        for i, key in enumerate(("a", "b", "c")):
            cache.set(key, i)
            clock.advance(seconds=1)

        cache.set("d", 3)

        assert cache.get("a") is None
        assert len(cache) == 3

    def test_delete_and_pattern(self, cache):
        cache.set("delegates:s1", 1)
        cache.set("delegates:s2", 2)
        cache.set("other", 3)

        assert cache.delete("delegates:s1") is True
        assert cache.delete("delegates:s1") is False
        assert cache.delete_pattern("delegates:*") == 1
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_size": 0}])
    def test_rejects_non_positive_bounds(self, kwargs):
        with pytest.raises(ValueError):
            TTLCache(**kwargs)
