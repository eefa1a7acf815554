from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger("cache.adapters")


class CacheError(RuntimeError):
    """Raised when the cache backend encounters an unrecoverable error."""


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: bytes
    stored_at: float


class BaseCacheAdapter:
    async def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    async def put(self, key: str, value: bytes) -> None:
        raise NotImplementedError

    async def invalidate(self, key: str) -> None:
        raise NotImplementedError

    async def exists(self, key: str) -> bool:
        raise NotImplementedError


class InMemoryCacheAdapter(BaseCacheAdapter):
    """Process-local response cache with a fixed TTL and FIFO eviction.

    Entries are valid while ``now - stored_at < ttl_seconds``; expired entries
    are dropped lazily when read. Once the population exceeds ``max_entries``
    the oldest-inserted key is evicted, regardless of how recently it was read.
    Overwriting an existing key keeps its original insertion position.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 60.0,
        max_entries: int = 200,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise CacheError("ttl_seconds must be positive")
        if max_entries < 1:
            raise CacheError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._data: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.stored_at < self.ttl_seconds

    async def get(self, key: str) -> Optional[bytes]:
        async with self._lock:
            entry = self._data.get(key)
            if not entry:
                return None
            if not self._is_fresh(entry):
                self._data.pop(key, None)
                return None
            return entry.payload

    async def put(self, key: str, value: bytes) -> None:
        async with self._lock:
            self._data[key] = CacheEntry(key=key, payload=value, stored_at=self._clock())
            if len(self._data) > self.max_entries:
                oldest = next(iter(self._data))
                self._data.pop(oldest, None)
                logger.debug("Evicted oldest cache entry %s", oldest)

    async def invalidate(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)
