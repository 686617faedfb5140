"""
Circuit Breaker for Downstream Targets.

This module implements an in-process, asyncio-native circuit breaker. One
breaker is kept per downstream target by the CircuitBreakerManager, so a
degraded PRIMARY does not block calls routed to the FALLBACK.

MECHANISM OF ACTION:
-------------------
1.  **State Transitions**:
    - **CLOSED**: The downstream is healthy. Calls pass through.
      - On Failure: consecutive failure counter increments.
      - On Success: counter resets to 0.
      - Threshold Reached: counter >= failure_threshold -> OPEN.

    - **OPEN**: The downstream is down. Calls are rejected immediately with
      `CircuitOpenError` (fail fast) without touching it.
      - Recovery: once `cooldown` has elapsed since the last failure, the
        next call moves the breaker to HALF_OPEN and becomes the probe.

    - **HALF_OPEN**: Probing mode.
      - Exactly ONE probe is in flight; racing callers are rejected.
      - On Success: CLOSED, counters reset.
      - On Failure: back to OPEN, cooldown timer restarts.

2.  **Atomicity**:
    The read-then-decide sequence (is it OPEN? has cooldown passed? is a
    probe already out?) runs under the breaker's own asyncio.Lock. The
    downstream call itself runs outside the lock, so a slow probe never
    blocks callers from being rejected quickly.

3.  **What counts as a failure**:
    - Any exception from the wrapped call, except the `excluded` types
      (ValidationError by default: the downstream answered, so it is healthy).
    - An attempt abandoned at its deadline, reported through
      `record_timeout` before the attempt is cancelled.
    - NOT a cancellation by the caller: the probe slot is released and the
      state is left unchanged.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from inference_gateway.core.config.constants import (
    METRIC_BREAKER_REJECTED,
    METRIC_BREAKER_TRANSITION,
    CircuitState,
    Stage,
)
from inference_gateway.core.exceptions import (
    CircuitOpenError,
    OperationCancelledError,
    ValidationError,
)
from inference_gateway.core.interfaces.metrics import MetricsSink
from inference_gateway.core.logging import get_logger, log_stage
from inference_gateway.core.resilience.clock import Clock, SystemClock

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class Admission:
    """
    Ticket for one admitted call.

    Settled exactly once: by the call's own outcome, by a recorded
    timeout, or by a cancellation release, whichever comes first.
    """

    is_probe: bool
    settled: bool = False


class CircuitBreaker:
    """
    Failure-aware gate with CLOSED / OPEN / HALF_OPEN states.

    Designed for:
    1. AsyncIO native execution.
    2. State owned by the instance, with a defined lifecycle (no globals).
    3. Transparency: every transition is logged and reported as a metric.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        cooldown_ms: int = 30_000,
        clock: Clock | None = None,
        metrics: MetricsSink | None = None,
        excluded: tuple[type[BaseException], ...] = (ValidationError,),
    ):
        if failure_threshold <= 0:
            raise ValueError("failure_threshold must be positive")

        self.name = name
        self._failure_threshold = failure_threshold
        self._cooldown = cooldown_ms / 1000
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._excluded = excluded

        self._lock = asyncio.Lock()
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_at: float | None = None
        self._probe_in_flight = False

    # -- introspection ------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_failure_at(self) -> float | None:
        return self._last_failure_at

    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "consecutive_failures": self._consecutive_failures,
            "failure_threshold": self._failure_threshold,
            "cooldown_ms": int(self._cooldown * 1000),
            "probe_in_flight": self._probe_in_flight,
        }

    # -- state machine ------------------------------------------------------

    def _transition(self, new_state: CircuitState) -> None:
        """Must be called with the lock held."""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state

        level = "error" if new_state == CircuitState.OPEN else "info"
        log_stage(
            logger,
            Stage.CIRCUIT_BREAKER,
            f"Circuit '{self.name}' changed state",
            level=level,
            old_state=old_state.value,
            new_state=new_state.value,
            consecutive_failures=self._consecutive_failures,
        )
        if self._metrics is not None:
            self._metrics.increment(
                METRIC_BREAKER_TRANSITION,
                tags={"breaker": self.name, "from": old_state.value, "to": new_state.value},
            )

    def _reject(self) -> CircuitOpenError:
        if self._metrics is not None:
            self._metrics.increment(
                METRIC_BREAKER_REJECTED, tags={"breaker": self.name, "state": self._state.value}
            )
        retry_after_ms = 0
        if self._last_failure_at is not None:
            remaining = self._cooldown - (self._clock.monotonic() - self._last_failure_at)
            retry_after_ms = max(0, int(remaining * 1000))
        return CircuitOpenError(
            f"Circuit open for '{self.name}'",
            details={
                "breaker": self.name,
                "state": self._state.value,
                "retry_after_ms": retry_after_ms,
            },
        )

    async def admit(self) -> Admission:
        """
        Decide whether a call may proceed.

        Returns:
            The Admission to settle once the call's outcome is known

        Raises:
            CircuitOpenError: If the call must be rejected
        """
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return Admission(is_probe=False)

            if self._state == CircuitState.OPEN:
                elapsed = self._clock.monotonic() - (self._last_failure_at or 0.0)
                if elapsed < self._cooldown:
                    raise self._reject()
                self._transition(CircuitState.HALF_OPEN)

            # HALF_OPEN: exactly one probe at a time
            if self._probe_in_flight:
                raise self._reject()
            self._probe_in_flight = True
            log_stage(logger, Stage.CIRCUIT_BREAKER, f"Circuit '{self.name}' probe admitted")
            return Admission(is_probe=True)

    async def _record_success(self, admission: Admission) -> None:
        async with self._lock:
            if admission.settled:
                return
            admission.settled = True

            if admission.is_probe:
                self._probe_in_flight = False
                self._consecutive_failures = 0
                self._transition(CircuitState.CLOSED)
                logger.info(f"Circuit '{self.name}' recovered")
            elif self._state == CircuitState.CLOSED:
                self._consecutive_failures = 0
            # A straggler admitted before the circuit opened says nothing
            # about the current probe cycle; ignore it.

    async def _record_failure(self, admission: Admission, error: BaseException) -> None:
        async with self._lock:
            if admission.settled:
                return
            admission.settled = True

            if admission.is_probe:
                self._probe_in_flight = False
                self._consecutive_failures += 1
                self._last_failure_at = self._clock.monotonic()
                self._transition(CircuitState.OPEN)
                return

            if self._state != CircuitState.CLOSED:
                return

            self._consecutive_failures += 1
            self._last_failure_at = self._clock.monotonic()
            logger.warning(
                f"Circuit '{self.name}' recorded failure",
                failures=self._consecutive_failures,
                threshold=self._failure_threshold,
                error_type=type(error).__name__,
            )
            if self._consecutive_failures >= self._failure_threshold:
                self._transition(CircuitState.OPEN)

    async def _release(self, admission: Admission) -> None:
        async with self._lock:
            if admission.settled:
                return
            admission.settled = True
            if admission.is_probe:
                self._probe_in_flight = False

    # -- public API ---------------------------------------------------------

    async def record_timeout(self, admission: Admission, error: BaseException) -> None:
        """
        Count an attempt abandoned at its deadline as a failure.

        Called by whoever enforces the deadline, before the attempt is
        cancelled, so the failure is counted even if the attempt never
        unwinds. Whatever the abandoned call does afterwards is ignored.
        """
        await self._record_failure(admission, error)

    async def call(self, admission: Admission, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run an admitted call and settle its admission with the outcome."""
        try:
            result = await func(*args, **kwargs)
        except (asyncio.CancelledError, OperationCancelledError):
            await self._release(admission)
            raise
        except self._excluded:
            await self._record_success(admission)
            raise
        except Exception as exc:
            await self._record_failure(admission, exc)
            raise

        await self._record_success(admission)
        return result

    async def execute(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Run `func` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is OPEN (cooldown pending) or a
                probe is already in flight
            Whatever `func` raises, after recording the outcome
        """
        admission = await self.admit()
        return await self.call(admission, func, *args, **kwargs)

    async def reset(self) -> None:
        """Force the breaker back to CLOSED (operator action / tests)."""
        async with self._lock:
            self._consecutive_failures = 0
            self._last_failure_at = None
            self._probe_in_flight = False
            self._transition(CircuitState.CLOSED)


# ============================================================================
# Manager
# ============================================================================


class CircuitBreakerManager:
    """
    Keeps one breaker per downstream target.

    Owned by a Gateway; two gateways never share breaker state.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_ms: int = 30_000,
        clock: Clock | None = None,
        metrics: MetricsSink | None = None,
    ):
        self._failure_threshold = failure_threshold
        self._cooldown_ms = cooldown_ms
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._breakers: dict[str, CircuitBreaker] = {}

    def get_breaker(self, name: str) -> CircuitBreaker:
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(
                name,
                failure_threshold=self._failure_threshold,
                cooldown_ms=self._cooldown_ms,
                clock=self._clock,
                metrics=self._metrics,
            )
            logger.info(
                "Created circuit breaker",
                name=name,
                failure_threshold=self._failure_threshold,
                cooldown_ms=self._cooldown_ms,
            )
        return self._breakers[name]

    def get_state(self, name: str) -> CircuitState:
        breaker = self._breakers.get(name)
        return breaker.state if breaker else CircuitState.CLOSED

    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        return {name: breaker.stats() for name, breaker in self._breakers.items()}

    async def reset_all(self) -> None:
        for breaker in self._breakers.values():
            await breaker.reset()
