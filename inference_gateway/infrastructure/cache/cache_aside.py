"""
Cache-Aside (lazy loading)

Pattern:
- Check the cache first; on a hit, return without computing
- On a miss, compute, store the result if it is non-empty, return it

The cache is advisory. A backend that fails on read degrades into a miss
(compute runs directly); a backend that fails on write is logged and
ignored. Errors raised by the compute function itself always propagate and
are never retried here.

Keys are `{prefix}:{operation}:{sha256(canonical JSON of payload)}` so the
same logical input maps to the same key regardless of dict ordering.
"""

import hashlib
from collections.abc import Awaitable, Callable
from typing import Any

import orjson

from inference_gateway.core.config.constants import METRIC_CACHE_ERROR, METRIC_CACHE_LOOKUP, Stage
from inference_gateway.core.interfaces.cache import CacheBackend
from inference_gateway.core.interfaces.metrics import MetricsSink
from inference_gateway.core.logging import get_logger, log_stage

logger = get_logger(__name__)


def is_empty_result(value: Any) -> bool:
    """None, empty strings and empty collections are never cached."""
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


class CacheAside:
    """
    Best-effort memoization in front of an expensive async computation.

    Usage:
        cache = CacheAside(InMemoryCacheBackend(), default_ttl=86_400)
        key = cache.make_key("extractSkills", {"text": "..."})
        skills = await cache.get_or_compute(key, lambda: call_llm(...))
    """

    def __init__(
        self,
        backend: CacheBackend,
        key_prefix: str = "ai_service",
        default_ttl: int = 86_400,
        metrics: MetricsSink | None = None,
    ):
        self._backend = backend
        self._prefix = key_prefix
        self._default_ttl = default_ttl
        self._metrics = metrics
        self._hits = 0
        self._misses = 0
        self._errors = 0

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def make_key(self, name: str, payload: Any) -> str:
        """
        Deterministic cache key for an operation and its payload.

        Payload is normalized with orjson (sorted keys); values orjson cannot
        encode natively fall back to their str().
        """
        normalized = orjson.dumps(
            payload,
            default=str,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
        )
        digest = hashlib.sha256(normalized).hexdigest()
        return f"{self._prefix}:{name}:{digest}"

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl: int | None = None,
    ) -> Any:
        """
        Return the cached value for `key`, computing and storing it on a miss.

        Args:
            key: Cache key (see make_key)
            compute_fn: Zero-arg coroutine function producing the value
            ttl: Seconds to keep the value; defaults to the instance TTL

        Raises:
            Whatever compute_fn raises. Backend errors never propagate.
        """
        cached = await self._read(key)
        if cached is not None:
            self._hits += 1
            self._emit_lookup("hit")
            log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", level="debug", key=key)
            return cached

        self._misses += 1
        self._emit_lookup("miss")

        value = await compute_fn()

        if not is_empty_result(value):
            await self._write(key, value, ttl or self._default_ttl)
        return value

    async def invalidate(self, key: str) -> bool:
        """Drop `key` from the backend. Returns False if the backend failed."""
        try:
            return bool(await self._backend.delete(key))
        except Exception as e:
            self._record_error("delete", key, e)
            return False

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            "backend": type(self._backend).__name__,
        }

    # ------------------------------------------------------------------------
    # Backend access (errors swallowed)
    # ------------------------------------------------------------------------

    async def _read(self, key: str) -> Any | None:
        try:
            return await self._backend.get(key)
        except Exception as e:
            self._record_error("read", key, e)
            return None

    async def _write(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._backend.set(key, value, ttl)
        except Exception as e:
            self._record_error("write", key, e)
            return
        log_stage(logger, Stage.CACHE_WRITE, "Cached result", level="debug", key=key, ttl=ttl)

    def _record_error(self, operation: str, key: str, error: Exception) -> None:
        self._errors += 1
        logger.warning(
            "Cache backend failed, continuing without cache",
            operation=operation,
            key=key,
            error=str(error),
            error_type=type(error).__name__,
        )
        if self._metrics is not None:
            self._metrics.increment(METRIC_CACHE_ERROR, tags={"operation": operation})

    def _emit_lookup(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(METRIC_CACHE_LOOKUP, tags={"result": result})
