"""
Cache Backend Protocol

Abstract protocol for the stores CacheAside writes through.

Architectural Decision: Protocol-based abstraction
- Redis in production, an in-memory LRU for single-process use and tests
- Structural typing: any object with async get/set qualifies
- Backends may raise freely; CacheAside treats every backend error as a miss
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol defining the interface CacheAside needs from a store.

    Values are arbitrary JSON-serializable Python objects; serialization is
    the backend's concern. Both operations are best-effort.

    Implementations:
    - RedisCacheBackend: shared, out-of-process store (orjson encoded)
    - InMemoryCacheBackend: per-process LRU with TTL
    """

    async def get(self, key: str) -> Any | None:
        """
        Get value from cache.

        Returns:
            The stored value, or None if absent or expired

        Raises:
            CacheError (or any backend error): If the store is unavailable
        """
        ...

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """
        Store `value` under `key` for `ttl` seconds (last write wins).

        Raises:
            CacheError (or any backend error): If the store is unavailable
        """
        ...

    async def delete(self, key: str) -> bool:
        """Remove `key`. Returns True if something was deleted."""
        ...


@runtime_checkable
class ManagedCacheBackend(CacheBackend, Protocol):
    """A backend with an explicit connection lifecycle."""

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...
