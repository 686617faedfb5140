"""
Rate Limiter

Per-identity request budget over fixed time windows.

Algorithm (fixed window):
1. bucket = floor(now_ms / window_ms)
2. Increment the identity's counter for that bucket (create if absent)
3. If the post-increment count exceeds the limit, raise RateLimitExceeded.
   The increment is NOT rolled back: an over-limit attempt still counts, so
   a client hammering the gateway cannot reset its own budget.
4. Buckets of past windows are evicted when the identity is next seen; idle
   identities are swept periodically so memory stays O(active identities).

Trade-off: a caller may burst up to 2x the limit across a window boundary.
In exchange every check is O(1) with a single small dict per identity.

Two implementations share the `check_limit(identity)` contract:
- FixedWindowRateLimiter: in-process, lock per identity
- RedisRateLimiter: shared budget across processes via INCR + EXPIRE
"""

import asyncio
import math
from typing import Any, Protocol, runtime_checkable

from redis.exceptions import RedisError

from inference_gateway.core.config.constants import (
    RATE_LIMIT_SWEEP_INTERVAL,
    REDIS_KEY_RATE_LIMIT,
    Stage,
)
from inference_gateway.core.exceptions import RateLimitExceeded
from inference_gateway.core.logging import get_logger, log_stage
from inference_gateway.core.resilience.clock import Clock, SystemClock

logger = get_logger(__name__)


@runtime_checkable
class RateLimiter(Protocol):
    """Contract shared by the in-process and Redis-backed limiters."""

    async def check_limit(self, identity: str) -> None:
        """
        Count one request for `identity`.

        Raises:
            RateLimitExceeded: If the identity is over budget in this window
        """
        ...


class FixedWindowRateLimiter:
    """
    In-process fixed-window limiter.

    State is owned by the instance (one per Gateway); there is no module-level
    registry, so independent gateways keep independent budgets.

    Thread-Safety: one asyncio.Lock per identity. Unrelated identities never
    wait on each other.
    """

    def __init__(self, max_requests: int, window_ms: int, clock: Clock | None = None):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        self._max_requests = max_requests
        self._window_ms = window_ms
        self._clock = clock or SystemClock()

        # identity -> {bucket -> count}
        self._windows: dict[str, dict[int, int]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._checks = 0

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def active_identities(self) -> int:
        """Number of identities currently holding window state."""
        return len(self._windows)

    def _now_ms(self) -> float:
        return self._clock.now() * 1000

    def _bucket(self, now_ms: float) -> int:
        return int(now_ms // self._window_ms)

    def _lock_for(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    @staticmethod
    def _evict_stale(window: dict[int, int], current_bucket: int) -> None:
        for bucket in [b for b in window if b < current_bucket]:
            del window[bucket]

    async def check_limit(self, identity: str) -> None:
        """
        Count one request for `identity` in the current window.

        Raises:
            RateLimitExceeded: If the post-increment count exceeds the limit
        """
        async with self._lock_for(identity):
            now_ms = self._now_ms()
            bucket = self._bucket(now_ms)

            window = self._windows.setdefault(identity, {})
            self._evict_stale(window, bucket)

            count = window.get(bucket, 0) + 1
            window[bucket] = count

        self._checks += 1
        if self._checks % RATE_LIMIT_SWEEP_INTERVAL == 0:
            self._sweep(bucket)

        if count > self._max_requests:
            retry_after_ms = (bucket + 1) * self._window_ms - now_ms
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Rate limit exceeded",
                level="warning",
                identity=identity,
                count=count,
                limit=self._max_requests,
            )
            raise RateLimitExceeded(
                f"Rate limit exceeded for '{identity}'",
                details={
                    "identity": identity,
                    "limit": self._max_requests,
                    "window_ms": self._window_ms,
                    "retry_after_ms": max(0, math.ceil(retry_after_ms)),
                },
            )

    def remaining(self, identity: str) -> int:
        """Requests left for `identity` in the current window."""
        window = self._windows.get(identity)
        if not window:
            return self._max_requests
        used = window.get(self._bucket(self._now_ms()), 0)
        return max(0, self._max_requests - used)

    def _sweep(self, current_bucket: int) -> None:
        """
        Drop identities whose only buckets are stale.

        Runs without awaiting, so no other coroutine can observe a half-swept
        state. Identities whose lock is held are skipped.
        """
        removed = 0
        for identity in list(self._windows):
            lock = self._locks.get(identity)
            if lock is not None and lock.locked():
                continue
            window = self._windows[identity]
            self._evict_stale(window, current_bucket)
            if not window:
                del self._windows[identity]
                self._locks.pop(identity, None)
                removed += 1

        if removed:
            logger.debug("Swept idle rate limit identities", removed=removed)

    def reset(self, identity: str | None = None) -> None:
        """Forget window state for one identity, or for all of them."""
        if identity is None:
            self._windows.clear()
            self._locks.clear()
        else:
            self._windows.pop(identity, None)
            self._locks.pop(identity, None)


class RedisRateLimiter:
    """
    Redis-backed fixed-window limiter.

    Uses one key per (identity, bucket) with INCR + EXPIRE in a single
    pipeline round-trip, so the budget is shared by every gateway process
    pointed at the same Redis. INCR is atomic on the server; no local lock
    is needed.

    If Redis is unreachable the limiter fails open (the request is allowed)
    and logs a warning.
    """

    def __init__(
        self,
        redis_client: Any,
        max_requests: int,
        window_ms: int,
        clock: Clock | None = None,
        key_prefix: str = REDIS_KEY_RATE_LIMIT,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        self._redis = redis_client
        self._max_requests = max_requests
        self._window_ms = window_ms
        self._clock = clock or SystemClock()
        self._key_prefix = key_prefix
        # Keys outlive their window slightly so a late INCR never resurrects a bucket
        self._expire_seconds = math.ceil(window_ms / 1000) + 1

    def _key(self, identity: str, bucket: int) -> str:
        return f"{self._key_prefix}:{identity}:{bucket}"

    async def check_limit(self, identity: str) -> None:
        now_ms = self._clock.now() * 1000
        bucket = int(now_ms // self._window_ms)
        key = self._key(identity, bucket)

        try:
            pipe = self._redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, self._expire_seconds)
            count, _ = await pipe.execute()
        except (RedisError, OSError) as e:
            logger.warning(
                "Redis rate limit check failed, allowing request",
                identity=identity,
                error=str(e),
            )
            return

        count = int(count)
        if count > self._max_requests:
            retry_after_ms = (bucket + 1) * self._window_ms - now_ms
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Rate limit exceeded",
                level="warning",
                identity=identity,
                count=count,
                limit=self._max_requests,
                backend="redis",
            )
            raise RateLimitExceeded(
                f"Rate limit exceeded for '{identity}'",
                details={
                    "identity": identity,
                    "limit": self._max_requests,
                    "window_ms": self._window_ms,
                    "retry_after_ms": max(0, math.ceil(retry_after_ms)),
                },
            )
