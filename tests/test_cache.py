"""Tests for the analytics cache."""

from datetime import date

from folio.cache import AnalyticsCache

DAY = date(2024, 5, 10)


class TestAnalyticsCacheBasics:
    def test_named_instances_are_shared(self):
        assert AnalyticsCache("test_shared") is AnalyticsCache("test_shared")
        assert AnalyticsCache("test_shared") is not AnalyticsCache("test_other")

    def test_get_set(self):
        cache = AnalyticsCache("test_basic")
        cache.set("AAPL", "monthly", DAY, 0.05)
        assert cache.get("AAPL", "monthly", DAY) == 0.05

    def test_key_includes_kind_and_date(self):
        cache = AnalyticsCache("test_keys")
        cache.set("AAPL", "monthly", DAY, 0.05)
        assert cache.get("AAPL", "daily", DAY) is None
        assert cache.get("AAPL", "monthly", date(2024, 5, 11)) is None

    def test_expiry(self):
        cache = AnalyticsCache("test_expiry")
        cache.set("AAPL", "monthly", DAY, 0.05, ttl_seconds=-1)
        assert cache.get("AAPL", "monthly", DAY) is None

    def test_stats_count_hits_and_misses(self):
        cache = AnalyticsCache("test_stats")
        cache.set("AAPL", "monthly", DAY, 0.05)
        cache.get("AAPL", "monthly", DAY)
        cache.get("MSFT", "monthly", DAY)
        stats = cache.stats()
        assert stats["entries"] == 1
        assert stats["hits"] >= 1
        assert stats["misses"] >= 1


class TestInvalidation:
    def test_invalidate_subject_removes_all_kinds(self):
        cache = AnalyticsCache("test_invalidate")
        key = AnalyticsCache.portfolio_key(3)
        cache.set(key, "monthly", DAY, 0.1)
        cache.set(key, "annualized", DAY, 0.3)
        cache.set("AAPL", "monthly", DAY, 0.05)

        assert cache.invalidate_subject(key) == 2
        assert cache.get(key, "monthly", DAY) is None
        assert cache.get("AAPL", "monthly", DAY) == 0.05

    def test_clear_all(self):
        cache = AnalyticsCache("test_clear_all")
        cache.set("AAPL", "monthly", DAY, 0.05)
        cleared = AnalyticsCache.clear_all()
        assert cleared["test_clear_all"] == 1
