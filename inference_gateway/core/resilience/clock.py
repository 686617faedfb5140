"""
Time source and jitter generator.

Every time-dependent component (rate limiter windows, breaker cooldown,
retry backoff, cache TTL) reads time through a Clock so tests can drive it
deterministically.
"""

import asyncio
import random
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Time source used by the resilience components."""

    def now(self) -> float:
        """Wall-clock time in seconds since the epoch (window bucketing)."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds for measuring durations and cooldowns."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Clock backed by the `time` module and asyncio.sleep."""

    def now(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class Jitter:
    """
    Randomized jitter source.

    Wraps a private `random.Random` so a seed can be pinned per gateway
    without touching the global RNG.
    """

    def __init__(self, seed: int | None = None):
        self._random = random.Random(seed)

    def uniform(self, span: float) -> float:
        """Return a value in [0, span]."""
        if span <= 0:
            return 0.0
        return self._random.uniform(0.0, span)
