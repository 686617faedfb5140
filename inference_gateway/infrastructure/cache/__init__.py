"""
Cache Module

Cache-aside memoization of downstream results.

Components:
-----------
- **cache_aside.py**: CacheAside (get_or_compute, make_key, invalidate, stats)
- **memory_backend.py**: InMemoryCacheBackend, per-process LRU with TTL
- **redis_backend.py**: RedisCacheBackend, shared store via redis.asyncio
"""

from inference_gateway.infrastructure.cache.cache_aside import CacheAside, is_empty_result
from inference_gateway.infrastructure.cache.memory_backend import InMemoryCacheBackend
from inference_gateway.infrastructure.cache.redis_backend import (
    RedisCacheBackend,
    create_redis_client,
)

__all__ = [
    "CacheAside",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "create_redis_client",
    "is_empty_result",
]
