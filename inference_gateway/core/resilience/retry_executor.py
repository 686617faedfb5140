"""
Retry Executor

Bounded-attempt retry with exponential backoff, jitter and a per-attempt
timeout, built on tenacity's AsyncRetrying.

For attempt = 1..max_attempts:
1. Race attempt_fn(attempt) against timeout_ms. A timeout reports the
   attempt through `on_timeout`, cancels it, gives it a short grace period
   to unwind and then leaves it behind. It counts as a retryable failure.
2. Classify the outcome:
   - success            -> return immediately
   - non-retryable      -> raise immediately (validation, local guards,
                           cancellation)
   - retryable, last    -> raise GatewayExhaustedError(last cause, attempts,
                           elapsed)
   - retryable          -> sleep, then try again
3. delay = min(max_delay, base_delay * 2^(attempt-1) + uniform(0, jitter))

RateLimitExceeded and CircuitOpenError are non-retryable: they are re-raised
to the caller as-is and never wrapped as exhaustion. A CircuitOpenError
record is marked `rejected` and emits no attempt metric.

Cancellation: an optional asyncio.Event aborts the attempt in flight and
skips any remaining backoff and attempts.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from inference_gateway.core.config.constants import (
    ATTEMPT_ABANDON_GRACE_MS,
    ATTEMPT_TIMEOUT_CANCEL_MSG,
    METRIC_ATTEMPT_DURATION,
    Stage,
)
from inference_gateway.core.exceptions import (
    AttemptTimeoutError,
    CircuitOpenError,
    GatewayError,
    GatewayExhaustedError,
    OperationCancelledError,
)
from inference_gateway.core.interfaces.metrics import MetricsSink
from inference_gateway.core.logging import get_logger, log_stage
from inference_gateway.core.models import AttemptRecord, RetryPolicy, attempts_made
from inference_gateway.core.resilience.classifier import ErrorClassifier
from inference_gateway.core.resilience.clock import Clock, Jitter, SystemClock

logger = get_logger(__name__)

T = TypeVar("T")

AttemptFn = Callable[[int], Awaitable[T]]
TimeoutHook = Callable[[AttemptRecord, AttemptTimeoutError], Awaitable[None]]


class BackoffWithJitter(wait_base):
    """
    tenacity wait strategy: capped exponential backoff plus additive jitter.

    Same shape as tenacity's wait_exponential_jitter, but the jitter comes
    from the executor's Jitter so tests can pin it. Values are in seconds.
    """

    def __init__(self, policy: RetryPolicy, jitter: Jitter):
        self._base = policy.base_delay_ms / 1000
        self._max = policy.max_delay_ms / 1000
        self._jitter_span = policy.jitter_ms / 1000
        self._jitter = jitter

    def __call__(self, retry_state: RetryCallState) -> float:
        exp = 2 ** (retry_state.attempt_number - 1)
        delay = self._base * exp + self._jitter.uniform(self._jitter_span)
        return max(0.0, min(delay, self._max))


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, GatewayError) and exc.retryable


def _consume(task: asyncio.Future) -> None:
    # Retrieve the outcome so asyncio never reports it as unhandled
    if not task.cancelled():
        task.exception()


class RetryExecutor:
    """
    Runs one logical call as up to `policy.max_attempts` attempts.

    Usage:
        executor = RetryExecutor(metrics=sink)
        result = await executor.run(lambda n: call_downstream(n), policy)
    """

    def __init__(
        self,
        classifier: ErrorClassifier | None = None,
        metrics: MetricsSink | None = None,
        clock: Clock | None = None,
        jitter: Jitter | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self._classifier = classifier or ErrorClassifier()
        self._metrics = metrics
        self._clock = clock or SystemClock()
        self._jitter = jitter or Jitter()
        self._sleep = sleep or self._clock.sleep
        # Attempts that ignored cancellation; referenced until they finish
        self._abandoned: set[asyncio.Future] = set()

    @property
    def abandoned(self) -> int:
        """Timed-out attempts still running in the background."""
        return len(self._abandoned)

    async def run(
        self,
        attempt_fn: AttemptFn,
        policy: RetryPolicy,
        *,
        cancel_event: asyncio.Event | None = None,
        records: list[AttemptRecord] | None = None,
        tags: Mapping[str, Any] | None = None,
        on_timeout: TimeoutHook | None = None,
    ) -> Any:
        """
        Execute `attempt_fn` under `policy`.

        Args:
            attempt_fn: Coroutine function taking the 1-based attempt number
            policy: Attempt budget, backoff and per-attempt timeout
            cancel_event: Optional token; once set, nothing more is attempted
            records: Optional list that receives one AttemptRecord per attempt.
                The record of the attempt in flight is appended before
                attempt_fn is awaited, so attempt_fn may annotate records[-1].
            tags: Extra metric tags (operation name, ...)
            on_timeout: Optional coroutine called with the record and the
                timeout error when an attempt hits its deadline, before the
                attempt is cancelled

        Raises:
            GatewayExhaustedError: After max_attempts retryable failures
            GatewayError: Any non-retryable classified failure, unchanged
        """
        records = records if records is not None else []
        tags = dict(tags or {})
        started = self._clock.monotonic()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=BackoffWithJitter(policy, self._jitter),
            retry=retry_if_exception(_is_retryable),
            sleep=self._cancellable_sleep(cancel_event),
            before_sleep=self._log_before_sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._attempt(
                        attempt_fn,
                        attempt.retry_state.attempt_number,
                        policy,
                        cancel_event,
                        records,
                        tags,
                        on_timeout,
                    )
        except GatewayError as exc:
            if not exc.retryable:
                raise
            elapsed_ms = (self._clock.monotonic() - started) * 1000
            attempts = attempts_made(records)
            log_stage(
                logger,
                Stage.RETRY,
                "Retries exhausted",
                level="error",
                attempts=attempts,
                elapsed_ms=round(elapsed_ms, 2),
                last_outcome=exc.outcome,
            )
            raise GatewayExhaustedError(
                f"Operation failed after {attempts} attempts: {exc.message}",
                attempts=attempts,
                elapsed_ms=elapsed_ms,
                last_error=exc,
                records=records,
            ) from exc

        return result

    # ------------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------------

    async def _attempt(
        self,
        attempt_fn: AttemptFn,
        attempt_number: int,
        policy: RetryPolicy,
        cancel_event: asyncio.Event | None,
        records: list[AttemptRecord],
        tags: dict[str, Any],
        on_timeout: TimeoutHook | None,
    ) -> Any:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(
                "Operation cancelled before attempt", details={"attempt": attempt_number}
            )

        record = AttemptRecord(attempt_number=attempt_number, started_at=self._clock.monotonic())
        records.append(record)

        try:
            result = await self._race(
                attempt_fn(attempt_number), record, policy.timeout_ms, cancel_event, on_timeout
            )
        except Exception as exc:
            error = self._classifier.classify(exc, attempt=attempt_number)
            if isinstance(error, CircuitOpenError):
                self._reject(record, error)
            else:
                self._finish(record, error.outcome, error, tags)
            if error is not exc:
                raise error from exc
            raise

        self._finish(record, "success", None, tags)
        return result

    async def _race(
        self,
        coro: Awaitable[Any],
        record: AttemptRecord,
        timeout_ms: int,
        cancel_event: asyncio.Event | None,
        on_timeout: TimeoutHook | None,
    ) -> Any:
        """Await `coro` against the attempt deadline and the cancel token."""
        attempt_number = record.attempt_number
        task = asyncio.ensure_future(coro)
        waiters: set[asyncio.Future] = {task}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout_ms / 1000, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()

        if task in done:
            return task.result()

        if cancel_waiter is not None and cancel_waiter in done:
            task.cancel()
            await self._drain(task)
            raise OperationCancelledError(
                "Operation cancelled by caller", details={"attempt": attempt_number}
            )

        error = AttemptTimeoutError(
            f"Attempt {attempt_number} timed out after {timeout_ms}ms",
            details={"attempt": attempt_number, "timeout_ms": timeout_ms},
        )
        try:
            if on_timeout is not None:
                await on_timeout(record, error)
        finally:
            task.cancel(msg=ATTEMPT_TIMEOUT_CANCEL_MSG)
            await self._drain(task)
        raise error

    async def _drain(self, task: asyncio.Future) -> None:
        """
        Give a cancelled attempt a short grace period to unwind.

        An attempt that is still running afterwards (slow cleanup, or it
        swallowed the cancellation) is left behind and never waited on.
        """
        done, _ = await asyncio.wait({task}, timeout=ATTEMPT_ABANDON_GRACE_MS / 1000)
        if done:
            _consume(task)
            return

        self._abandoned.add(task)
        task.add_done_callback(self._forget)
        log_stage(
            logger,
            Stage.RETRY,
            "Attempt did not unwind after cancellation, abandoning it",
            level="warning",
            abandoned=len(self._abandoned),
        )

    def _forget(self, task: asyncio.Future) -> None:
        self._abandoned.discard(task)
        _consume(task)

    def _reject(self, record: AttemptRecord, error: GatewayError) -> None:
        record.rejected = True
        record.outcome = error.outcome
        record.error = error
        record.duration_ms = (self._clock.monotonic() - record.started_at) * 1000
        log_stage(
            logger,
            Stage.RETRY,
            "Attempt rejected before reaching the downstream",
            level="debug",
            attempt=record.attempt_number,
            target=record.target,
            outcome=error.outcome,
        )

    def _finish(
        self,
        record: AttemptRecord,
        outcome: str,
        error: GatewayError | None,
        tags: dict[str, Any],
    ) -> None:
        record.outcome = outcome
        record.error = error
        record.duration_ms = (self._clock.monotonic() - record.started_at) * 1000

        if self._metrics is not None:
            self._metrics.timing(
                METRIC_ATTEMPT_DURATION,
                record.duration_ms,
                tags={
                    **tags,
                    "attempt": record.attempt_number,
                    "outcome": outcome,
                    "target": record.target or "unknown",
                },
            )

        if error is not None:
            log_stage(
                logger,
                Stage.RETRY,
                "Attempt failed",
                level="warning",
                attempt=record.attempt_number,
                target=record.target,
                outcome=outcome,
                error=error.message,
            )

    # ------------------------------------------------------------------------
    # tenacity hooks
    # ------------------------------------------------------------------------

    def _cancellable_sleep(
        self, cancel_event: asyncio.Event | None
    ) -> Callable[[float], Awaitable[None]]:
        if cancel_event is None:
            return self._sleep

        async def sleep(seconds: float) -> None:
            if cancel_event.is_set():
                raise OperationCancelledError("Operation cancelled during backoff")

            sleeper = asyncio.ensure_future(self._sleep(seconds))
            waiter = asyncio.ensure_future(cancel_event.wait())
            try:
                await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for pending in (sleeper, waiter):
                    if not pending.done():
                        pending.cancel()

            if cancel_event.is_set():
                raise OperationCancelledError("Operation cancelled during backoff")

        return sleep

    @staticmethod
    def _log_before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        log_stage(
            logger,
            Stage.RETRY,
            "Retrying after backoff",
            attempt=retry_state.attempt_number,
            delay_ms=round((retry_state.next_action.sleep if retry_state.next_action else 0) * 1000, 2),
            outcome=getattr(exc, "outcome", None),
        )
