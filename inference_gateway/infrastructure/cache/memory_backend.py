"""
In-memory LRU cache backend with per-entry TTL.

Per-process only; use RedisCacheBackend to share results across workers.

Implementation Details:
- OrderedDict for O(1) access and LRU ordering
- asyncio.Lock around every mutation
- Expired entries are dropped when read; LRU eviction keeps size bounded
"""

import asyncio
from collections import OrderedDict
from typing import Any

from inference_gateway.core.models import CacheEntry
from inference_gateway.core.resilience.clock import Clock, SystemClock


class InMemoryCacheBackend:
    """LRU + TTL store implementing the CacheBackend protocol."""

    def __init__(self, max_size: int = 1_000, clock: Clock | None = None):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._clock = clock or SystemClock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock.monotonic()):
                del self._entries[key]
                return None
            # Mark as recently used
            self._entries.move_to_end(key)
            return entry.value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        async with self._lock:
            self._entries[key] = CacheEntry(
                key=key, value=value, stored_at=self._clock.monotonic(), ttl=ttl
            )
            self._entries.move_to_end(key)

            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def max_size(self) -> int:
        return self._max_size

    def keys(self) -> list[str]:
        """Keys in LRU order (oldest first)."""
        return list(self._entries.keys())
