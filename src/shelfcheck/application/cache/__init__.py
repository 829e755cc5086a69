"""Caching layer - Cache implementations for reducing catalog API calls."""

from shelfcheck.application.cache.base_cache import (
    BaseCache,
    CacheEntry,
    InMemoryCache,
    ResponseCache,
)

__all__ = [
    "BaseCache",
    "CacheEntry",
    "InMemoryCache",
    "ResponseCache",
]
