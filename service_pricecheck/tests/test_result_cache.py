"""
Unit tests for ResultCache.
"""

import pytest

from service_pricecheck.app.caching.result_cache import MISSING, ResultCache


class TestResultCache:
    """Test cases for ResultCache."""

    @pytest.fixture
    def cache(self, clock):
        """Create ResultCache instance on a fake clock."""
        return ResultCache(clock=clock)

    @pytest.fixture
    def mock_summary(self):
        """Mock price-check summary."""
        return {"average_price": 412.5, "item_count": 4, "source": "eBay Marketplace Insights API"}

    def test_get_miss(self, cache):
        """Unknown fingerprints are absent and counted as misses."""
        assert cache.get("iphone 12|||used") is MISSING
        assert cache.stats()["miss_count"] == 1
        assert cache.stats()["hit_count"] == 0

    def test_set_then_get(self, cache, mock_summary):
        """Stored values are returned and counted as hits."""
        cache.set("iphone 12|||used", mock_summary)

        assert cache.get("iphone 12|||used") == mock_summary
        assert cache.stats()["hit_count"] == 1

    def test_ttl_expiry(self, cache, clock, mock_summary):
        """Entries vanish once the TTL has elapsed."""
        cache.set("k", mock_summary, ttl=1)
        assert cache.get("k") == mock_summary

        clock.advance(1.001)

        assert cache.get("k") is MISSING

    def test_expired_exactly_at_deadline(self, cache, clock):
        """An entry is already absent at its expiry instant."""
        cache.set("k", "v", ttl=5)
        clock.advance(5)

        assert cache.get("k") is MISSING

    def test_default_ttl(self, cache, clock):
        """Default TTL is thirty minutes."""
        cache.set("k", "v")

        clock.advance(1799)
        assert cache.get("k") == "v"

        clock.advance(1)
        assert cache.get("k") is MISSING

    def test_falsy_values_are_cached(self, cache):
        """None and empty payloads are hits, not misses."""
        cache.set("none", None)
        cache.set("empty", [])

        assert cache.get("none") is None
        assert cache.get("empty") == []
        assert cache.stats()["hit_count"] == 2

    def test_overwrite_replaces_value_and_size(self, cache):
        """Overwriting an entry does not double-count its size."""
        cache.set("k", "a" * 100)
        first_size = cache.stats()["approx_size_bytes"]

        cache.set("k", "b")

        assert cache.get("k") == "b"
        assert cache.stats()["entry_count"] == 1
        assert cache.stats()["approx_size_bytes"] < first_size

    def test_clear_keeps_lifetime_counters(self, cache, mock_summary):
        """Clearing drops entries and size but keeps hit/miss history."""
        cache.set("a", mock_summary)
        cache.get("a")
        cache.get("b")

        cache.clear()
        stats = cache.stats()

        assert stats["entry_count"] == 0
        assert stats["approx_size_bytes"] == 0
        assert stats["hit_count"] == 1
        assert stats["miss_count"] == 1
        assert cache.get("a") is MISSING

    def test_stats_ignores_expired_entries(self, cache, clock):
        """Expired but unpurged entries are not reported as live."""
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=100)
        clock.advance(2)

        assert cache.stats()["entry_count"] == 1
        assert len(cache) == 2

    def test_prune_expired(self, cache, clock):
        """Pruning removes expired entries and reports how many."""
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=1)
        cache.set("c", 3, ttl=100)
        clock.advance(2)

        assert cache.prune_expired() == 2
        assert len(cache) == 1
        assert cache.get("c") == 3

    def test_contains_does_not_count(self, cache, clock):
        """Peeking at an entry leaves hit/miss counters alone."""
        cache.set("k", "v", ttl=1)

        assert cache.contains("k") is True
        assert cache.contains("other") is False
        clock.advance(1)
        assert cache.contains("k") is False

        stats = cache.stats()
        assert stats["hit_count"] == 0
        assert stats["miss_count"] == 0

    def test_unserializable_values_have_a_size(self, cache):
        """Values that are not JSON-friendly still get an approximate size."""
        cache.set("k", object())

        assert cache.stats()["approx_size_bytes"] > 0
