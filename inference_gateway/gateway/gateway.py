"""
Gateway Façade

The single entry point the application uses to call an unreliable downstream.

INVOCATION FLOW:
---------------
    invoke(operation)
      ├── 1. Cache lookup (cacheable operations only)        -> hit: return
      ├── 2. Rate limit check for operation.identity         -> RateLimitExceeded
      ├── 3. Retry loop (RetryExecutor)
      │     └── per attempt:
      │           ├── router picks PRIMARY / FALLBACK
      │           ├── that target's circuit breaker gates     -> CircuitOpenError
      │           └── downstream call under the attempt timeout, outcome classified
      ├── 4. Cache write of a non-empty result
      └── 5. Summary metrics, whatever the outcome

Every component is owned by the Gateway instance; two gateways in one
process share nothing.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from redis.asyncio import Redis

from inference_gateway.core.config.constants import (
    METRIC_INVOCATION_COUNT,
    METRIC_INVOCATION_DURATION,
    METRIC_RATE_LIMITED,
    CacheStatus,
    Stage,
)
from inference_gateway.core.config.settings import Settings, get_settings
from inference_gateway.core.exceptions import AttemptTimeoutError, GatewayError, RateLimitExceeded
from inference_gateway.core.interfaces.cache import CacheBackend, ManagedCacheBackend
from inference_gateway.core.interfaces.downstream import DownstreamCall
from inference_gateway.core.interfaces.metrics import MetricsSink
from inference_gateway.core.logging import clear_invocation_id, get_logger, log_stage, set_invocation_id
from inference_gateway.core.models import AttemptRecord, Operation, RetryPolicy, Target, attempts_made
from inference_gateway.core.resilience.circuit_breaker import Admission, CircuitBreaker, CircuitBreakerManager
from inference_gateway.core.resilience.classifier import ErrorClassifier
from inference_gateway.core.resilience.clock import Clock, Jitter, SystemClock
from inference_gateway.core.resilience.model_router import ModelRouter
from inference_gateway.core.resilience.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimiter,
    RedisRateLimiter,
)
from inference_gateway.core.resilience.retry_executor import RetryExecutor
from inference_gateway.infrastructure.cache import (
    CacheAside,
    InMemoryCacheBackend,
    RedisCacheBackend,
    create_redis_client,
)
from inference_gateway.infrastructure.monitoring import safe_sink

logger = get_logger(__name__)


class Gateway:
    """
    Resilience gateway around one downstream capability.

    Usage:
        async with Gateway(OpenAIChatCaller.from_settings(settings), settings) as gateway:
            skills = await gateway.invoke(
                Operation(name="extractSkills", identity=user_id, payload=request, cacheable=True)
            )

    Collaborators (rate limiter, cache backend, router, clock, jitter, sleep,
    classifier, metrics sink) can be injected; anything not given is built
    from settings.
    """

    def __init__(
        self,
        call: DownstreamCall,
        settings: Settings | None = None,
        *,
        metrics: MetricsSink | None = None,
        rate_limiter: RateLimiter | None = None,
        cache_backend: CacheBackend | None = None,
        router: ModelRouter | None = None,
        classifier: ErrorClassifier | None = None,
        clock: Clock | None = None,
        jitter: Jitter | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        redis_client: Redis | None = None,
    ):
        self.settings = settings or get_settings()
        self._call = call
        self._metrics = safe_sink(metrics)
        self._clock = clock or SystemClock()
        self._sleep = sleep or self._clock.sleep
        self._classifier = classifier or ErrorClassifier()

        self._redis = redis_client
        self._owns_redis = False

        self.rate_limiter = rate_limiter or self._build_rate_limiter()
        self.breakers = CircuitBreakerManager(
            failure_threshold=self.settings.CB_FAILURE_THRESHOLD,
            cooldown_ms=self.settings.CB_COOLDOWN_MS,
            clock=self._clock,
            metrics=self._metrics,
        )
        self.router = router or ModelRouter.from_settings(self.settings, metrics=self._metrics)
        self.cache = self._build_cache(cache_backend)
        self._policy = RetryPolicy.from_settings(self.settings)
        self._executor = RetryExecutor(
            classifier=self._classifier,
            metrics=self._metrics,
            clock=self._clock,
            jitter=jitter,
            sleep=self._sleep,
        )
        self._started = False

    # ------------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------------

    def _redis_client(self) -> Redis:
        if self._redis is None:
            self._redis = create_redis_client(self.settings.redis)
            self._owns_redis = True
        return self._redis

    def _build_rate_limiter(self) -> RateLimiter:
        rate_limit = self.settings.rate_limit
        if rate_limit.RATE_LIMIT_BACKEND == "redis":
            return RedisRateLimiter(
                self._redis_client(),
                max_requests=rate_limit.RATE_LIMIT_MAX_REQUESTS,
                window_ms=rate_limit.RATE_LIMIT_WINDOW_MS,
                clock=self._clock,
            )
        return FixedWindowRateLimiter(
            max_requests=rate_limit.RATE_LIMIT_MAX_REQUESTS,
            window_ms=rate_limit.RATE_LIMIT_WINDOW_MS,
            clock=self._clock,
        )

    def _build_cache(self, backend: CacheBackend | None) -> CacheAside | None:
        cache = self.settings.cache
        if not cache.CACHE_ENABLED:
            return None
        if backend is None:
            if cache.CACHE_BACKEND == "redis":
                backend = RedisCacheBackend(self._redis_client(), owns_client=False)
            else:
                backend = InMemoryCacheBackend(max_size=cache.CACHE_MEMORY_MAX_SIZE, clock=self._clock)
        return CacheAside(
            backend,
            key_prefix=cache.CACHE_KEY_PREFIX,
            default_ttl=cache.CACHE_TTL,
            metrics=self._metrics,
        )

    # ------------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------------

    async def start(self) -> None:
        """Connect managed backends. A cache that cannot connect is logged, not fatal."""
        if self._started:
            return
        if self.cache is not None and isinstance(self.cache.backend, ManagedCacheBackend):
            try:
                await self.cache.backend.connect()
            except Exception as e:
                logger.warning("Cache backend unavailable at startup, continuing", error=str(e))
        self._started = True
        log_stage(logger, Stage.INVOCATION, "Gateway started", targets=[t.name for t in self.router.targets()])

    async def close(self) -> None:
        if self.cache is not None and isinstance(self.cache.backend, ManagedCacheBackend):
            try:
                await self.cache.backend.disconnect()
            except Exception as e:
                logger.warning("Cache backend failed to disconnect", error=str(e))
        if self._owns_redis and self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        self._started = False
        log_stage(logger, Stage.INVOCATION, "Gateway closed")

    async def __aenter__(self) -> "Gateway":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------------

    async def invoke(self, operation: Operation, *, cancel_event: asyncio.Event | None = None) -> Any:
        """
        Run one operation through cache, rate limiter, retries and breakers.

        Raises:
            RateLimitExceeded: identity over budget (never retried)
            CircuitOpenError: the routed target's breaker rejected the call
            ValidationError: the downstream rejected the input
            GatewayExhaustedError: every attempt failed with a retryable error
            OperationCancelledError: cancel_event fired
        """
        set_invocation_id(operation.invocation_id)
        started = self._clock.monotonic()
        records: list[AttemptRecord] = []
        outcome = "success"
        cache_status = CacheStatus.BYPASS

        log_stage(
            logger,
            Stage.INVOCATION,
            "Invocation started",
            operation=operation.name,
            identity=operation.identity,
            cacheable=operation.cacheable,
        )

        try:
            if operation.cacheable and self.cache is not None:
                cache_status = CacheStatus.HIT

                async def compute() -> Any:
                    nonlocal cache_status
                    cache_status = CacheStatus.MISS
                    return await self._core_invoke(operation, records, cancel_event)

                key = self.cache.make_key(operation.name, operation.payload)
                return await self.cache.get_or_compute(key, compute, operation.cache_ttl)

            return await self._core_invoke(operation, records, cancel_event)

        except GatewayError as exc:
            outcome = exc.outcome
            raise exc.with_context(**self._context(operation, records, started))
        except asyncio.CancelledError:
            outcome = "cancelled"
            raise
        except Exception as exc:
            error = self._classifier.classify(exc)
            outcome = error.outcome
            raise error.with_context(**self._context(operation, records, started)) from exc
        finally:
            self._emit_summary(operation, outcome, records, cache_status, started)
            clear_invocation_id()

    async def _core_invoke(
        self,
        operation: Operation,
        records: list[AttemptRecord],
        cancel_event: asyncio.Event | None,
    ) -> Any:
        try:
            await self.rate_limiter.check_limit(operation.identity)
        except RateLimitExceeded:
            self._metrics.increment(METRIC_RATE_LIMITED, tags={"operation": operation.name})
            raise

        session = self.router.for_invocation()
        policy = self._policy.for_operation(operation)

        async def attempt(attempt_number: int) -> Any:
            prior_error = records[-2].error if len(records) > 1 else None
            target = session.select(attempt_number, prior_error)
            records[-1].target = target.name
            log_stage(
                logger,
                Stage.DOWNSTREAM_CALL,
                "Calling downstream",
                level="debug",
                attempt=attempt_number,
                target=target.name,
                model=target.model,
            )
            breaker = self.breakers.get_breaker(target.name)
            admission = await breaker.admit()
            admissions[attempt_number] = (breaker, admission)
            return await breaker.call(admission, self._call_downstream, target, operation.payload)

        async def timed_out(record: AttemptRecord, error: AttemptTimeoutError) -> None:
            # Counted here, since the abandoned call may never unwind
            admitted = admissions.pop(record.attempt_number, None)
            if admitted is not None:
                breaker, admission = admitted
                await breaker.record_timeout(admission, error)

        admissions: dict[int, tuple[CircuitBreaker, Admission]] = {}
        return await self._executor.run(
            attempt,
            policy,
            cancel_event=cancel_event,
            records=records,
            tags={"operation": operation.name},
            on_timeout=timed_out,
        )

    async def _call_downstream(self, target: Target, payload: Any) -> Any:
        """Classify at the boundary so the breaker sees the final error type."""
        try:
            return await self._call(target, payload)
        except Exception as exc:
            error = self._classifier.classify(exc, target=target.name)
            if error is exc:
                raise
            raise error from exc

    async def invoke_many(
        self,
        operations: Sequence[Operation],
        batch_size: int | None = None,
        concurrency: int | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Any]:
        """
        Invoke operations in chunks of `batch_size`, at most `concurrency` at a
        time, pausing between chunks.

        Returns:
            One slot per operation, in order: the result, or the GatewayError
            raised for that operation.
        """
        batch = self.settings.batch
        size = batch_size or batch.BATCH_SIZE
        limit = concurrency or batch.BATCH_CONCURRENCY
        if size <= 0 or limit <= 0:
            raise ValueError("batch_size and concurrency must be positive")

        semaphore = asyncio.Semaphore(limit)

        async def run_one(operation: Operation) -> Any:
            async with semaphore:
                try:
                    return await self.invoke(operation, cancel_event=cancel_event)
                except GatewayError as exc:
                    return exc

        results: list[Any] = []
        for start in range(0, len(operations), size):
            chunk = operations[start : start + size]
            log_stage(logger, Stage.BATCH, "Processing batch", offset=start, size=len(chunk))
            results.extend(await asyncio.gather(*(run_one(op) for op in chunk)))

            if start + size < len(operations) and batch.BATCH_PAUSE_MS > 0:
                await self._sleep(batch.BATCH_PAUSE_MS / 1000)

        return results

    # ------------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------------

    def _context(self, operation: Operation, records: list[AttemptRecord], started: float) -> dict[str, Any]:
        return {
            "operation": operation.name,
            "identity": operation.identity,
            "attempts": attempts_made(records),
            "elapsed_ms": round((self._clock.monotonic() - started) * 1000, 2),
        }

    def _emit_summary(
        self,
        operation: Operation,
        outcome: str,
        records: list[AttemptRecord],
        cache_status: CacheStatus,
        started: float,
    ) -> None:
        elapsed_ms = (self._clock.monotonic() - started) * 1000
        final_target = records[-1].target if records and records[-1].target else "none"
        tags = {
            "operation": operation.name,
            "outcome": outcome,
            "attempts": attempts_made(records),
            "cache": cache_status.value,
            "target": final_target,
        }
        self._metrics.timing(METRIC_INVOCATION_DURATION, elapsed_ms, tags=tags)
        self._metrics.increment(METRIC_INVOCATION_COUNT, tags=tags)

        log_stage(
            logger,
            Stage.SUMMARY,
            "Invocation finished",
            level="info" if outcome == "success" else "warning",
            elapsed_ms=round(elapsed_ms, 2),
            **tags,
        )

    def stats(self) -> dict[str, Any]:
        limiter_stats: dict[str, Any] = {"backend": type(self.rate_limiter).__name__}
        if isinstance(self.rate_limiter, FixedWindowRateLimiter):
            limiter_stats["active_identities"] = self.rate_limiter.active_identities
        return {
            "breakers": self.breakers.get_all_stats(),
            "rate_limiter": limiter_stats,
            "cache": self.cache.stats() if self.cache is not None else None,
            "started": self._started,
        }
