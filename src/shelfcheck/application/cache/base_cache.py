"""Base cache interface and in-memory TTL implementation."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

K = TypeVar("K")  # Key type
V = TypeVar("V")  # Value type


@dataclass
class CacheEntry(Generic[V]):
    """Cache entry with value and metadata."""

    value: V
    created_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        """Check if cache entry is expired at ``now``."""
        return now > (self.created_at + self.ttl_seconds)


class BaseCache(ABC, Generic[K, V]):
    """Base cache interface for all cache implementations."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live in seconds, None for the cache default
        """
        pass

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """Delete value from cache. Returns True if deleted, False if not found."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from cache."""
        pass

    @abstractmethod
    async def exists(self, key: K) -> bool:
        """Check if key exists and is not expired."""
        pass


# Hey future me, this is the catalog RESPONSE cache: one instance per catalog client, keyed by
# "endpoint?sorted-params". Only successful responses go in (the client never caches errors).
# Process-local on purpose - a restart simply re-fetches, TMDB data barely changes in 24h.
# The lock serializes get/set so an expired-entry eviction can't interleave with a fresh set.
class InMemoryCache(BaseCache[K, V]):
    """In-memory TTL cache with hit/miss accounting."""

    def __init__(
        self,
        default_ttl_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize in-memory cache.

        Args:
            default_ttl_seconds: TTL used when set() gets no explicit ttl
            clock: Time source in seconds (injectable for tests)
        """
        self._cache: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._hits = 0
        self._misses = 0

    # Yo, get() evicts expired entries on read, so it has a side effect. None means both
    # "never cached" and "expired" - callers don't care about the difference.
    async def get(self, key: K) -> V | None:
        """Get value from cache."""
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        """Set value in cache, overwriting any previous entry."""
        async with self._lock:
            self._cache[key] = CacheEntry(
                value=value,
                created_at=self._clock(),
                ttl_seconds=self._default_ttl if ttl_seconds is None else ttl_seconds,
            )

    async def delete(self, key: K) -> bool:
        """Delete value from cache."""
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear(self) -> None:
        """Clear all entries and reset hit/miss counters."""
        async with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    async def exists(self, key: K) -> bool:
        """Check if key exists in cache (without touching hit/miss counters)."""
        async with self._lock:
            entry = self._cache.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    async def cleanup_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            now = self._clock()
            expired_keys = [
                key for key, entry in self._cache.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)

    # Not locked - stats are for debugging and may be slightly stale.
    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        total_entries = len(self._cache)
        expired_entries = sum(
            1 for entry in self._cache.values() if entry.is_expired(now)
        )
        lookups = self._hits + self._misses

        return {
            "total_entries": total_entries,
            "active_entries": total_entries - expired_entries,
            "expired_entries": expired_entries,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
        }


# Catalog responses are decoded JSON objects keyed by request signature.
ResponseCache = InMemoryCache[str, Any]
