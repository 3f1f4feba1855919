"""Core release catalog modules."""

from .cache import CacheEntry, CacheStats, TTLCache, with_cache

__all__ = [
    'CacheEntry',
    'CacheStats',
    'TTLCache',
    'with_cache',
]
