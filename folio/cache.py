"""
Cache - In-memory TTL cache for analytics results.

Entries are keyed by (subject, kind, as-of date), where subject is a symbol
or a portfolio key such as "portfolio:3".

Usage:
    from folio.cache import AnalyticsCache

    cache = AnalyticsCache('volatility', ttl_seconds=3600)
    cache.set('AAPL', 'monthly', date(2024, 5, 1), 0.042)
    cached = cache.get('AAPL', 'monthly', date(2024, 5, 1))  # None if expired
    cache.invalidate_subject(AnalyticsCache.portfolio_key(3))
    cache.clear()
"""

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

CacheKey = tuple[str, str, str]


@dataclass
class CacheEntry:
    """A cached value with expiration timestamp."""

    value: Any
    expires_at: float
    created_at: float


class AnalyticsCache:
    """
    TTL cache with named shared instances.

    AnalyticsCache('volatility') returns the same object throughout the
    process, so invalidation from the trade executor is seen by every reader.
    """

    _instances: dict[str, "AnalyticsCache"] = {}

    def __new__(cls, name: str = "analytics", ttl_seconds: int = 3600):
        """Named singleton pattern - one cache instance per name."""
        if name not in cls._instances:
            instance = super().__new__(cls)
            instance._initialized = False
            cls._instances[name] = instance
        return cls._instances[name]

    def __init__(self, name: str = "analytics", ttl_seconds: int = 3600):
        if self._initialized:
            return
        self._initialized = True
        self._name = name
        self._ttl = ttl_seconds
        self._data: dict[CacheKey, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def portfolio_key(portfolio_id: int) -> str:
        return f"portfolio:{portfolio_id}"

    @staticmethod
    def _key(subject: str, kind: str, as_of: date) -> CacheKey:
        return (subject, kind, as_of.isoformat())

    def get(self, subject: str, kind: str, as_of: date) -> Optional[Any]:
        """
        Get a cached value.

        Returns None if the entry doesn't exist or has expired.
        """
        key = self._key(subject, kind, as_of)
        entry = self._data.get(key)
        if entry is None:
            self._misses += 1
            return None

        if time.time() > entry.expires_at:
            del self._data[key]
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, subject: str, kind: str, as_of: date, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """
        Store a value in the cache.

        Args:
            subject: Symbol or portfolio key
            kind: Computation kind, e.g. 'monthly'
            as_of: Date the value was computed for
            value: Value to store
            ttl_seconds: Optional override for TTL (uses default if not specified)
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl
        now = time.time()
        self._data[self._key(subject, kind, as_of)] = CacheEntry(value=value, expires_at=now + ttl, created_at=now)

    def invalidate_subject(self, subject: str) -> int:
        """
        Remove every entry for a symbol or portfolio key.

        Returns the number of entries removed.
        """
        keys = [key for key in self._data if key[0] == subject]
        for key in keys:
            del self._data[key]
        return len(keys)

    def clear(self) -> int:
        """
        Remove all entries from the cache.

        Returns the number of entries removed.
        """
        count = len(self._data)
        self._data.clear()
        return count

    def stats(self) -> dict:
        """Get cache statistics: entries, hits, misses and hit rate."""
        now = time.time()
        valid_entries = sum(1 for e in self._data.values() if e.expires_at > now)
        total_requests = self._hits + self._misses

        return {
            "name": self._name,
            "entries": valid_entries,
            "ttl_seconds": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total_requests if total_requests > 0 else 0.0,
        }

    @classmethod
    def clear_all(cls) -> dict[str, int]:
        """Clear all cache instances. Returns count of cleared entries per cache."""
        return {name: cache.clear() for name, cache in cls._instances.items()}
