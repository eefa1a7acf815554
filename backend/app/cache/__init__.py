"""Cache adapter implementations for listing response caching."""

from .adapters import (
    BaseCacheAdapter,
    CacheEntry,
    CacheError,
    InMemoryCacheAdapter,
)

__all__ = [
    "BaseCacheAdapter",
    "CacheEntry",
    "CacheError",
    "InMemoryCacheAdapter",
]
