"""
End-to-end gateway scenarios.

Real components everywhere (random jitter, Prometheus sink, Redis-backed
limiter and cache over the in-memory Redis stand-in); only time and the
downstream are scripted.
"""

import asyncio

import pytest

from inference_gateway.core.config.constants import METRIC_ATTEMPT_DURATION, CircuitState
from inference_gateway.core.exceptions import (
    CircuitOpenError,
    GatewayExhaustedError,
    RateLimitExceeded,
    TransientError,
)
from inference_gateway.core.models import Operation
from inference_gateway.core.resilience.clock import Jitter
from inference_gateway.gateway import Gateway
from inference_gateway.infrastructure.monitoring import PrometheusMetricsSink
from tests.test_fixtures import InMemoryRedis, RecordingMetricsSink, ScriptedDownstream

pytestmark = pytest.mark.integration


def extract_skills(identity="candidate-42"):
    return Operation(
        name="extractSkills",
        identity=identity,
        payload={"resume": "Built data pipelines in Python and SQL."},
        cacheable=True,
    )


@pytest.mark.asyncio
async def test_two_failures_then_success(settings, fake_clock):
    """maxAttempts=3, base 1000ms, max 5000ms; fails twice then succeeds."""
    sink = RecordingMetricsSink()
    downstream = ScriptedDownstream(
        TransientError("502"), ConnectionError("reset"), {"skills": ["python", "sql"]}
    )
    gateway = Gateway(downstream, settings, metrics=sink, clock=fake_clock, jitter=Jitter(seed=7))

    result = await gateway.invoke(extract_skills())

    assert result == {"skills": ["python", "sql"]}
    assert downstream.call_count == 3
    assert [tags["outcome"] for _, tags in sink.timings_for(METRIC_ATTEMPT_DURATION)] == [
        "transient",
        "transient",
        "success",
    ]

    delays_ms = [s * 1000 for s in fake_clock.sleeps]
    assert len(delays_ms) == 2
    assert 1000 <= delays_ms[0] <= 5000
    assert 2000 <= delays_ms[1] <= 5000
    assert 1000 <= sum(delays_ms) <= 5000

    # populated cache serves the repeat call
    assert await gateway.invoke(extract_skills()) == result
    assert downstream.call_count == 3


@pytest.mark.asyncio
async def test_sixth_rapid_call_is_rate_limited(settings, fake_clock):
    redis = InMemoryRedis()
    redis_settings = settings.model_copy(update={"RATE_LIMIT_BACKEND": "redis", "CACHE_BACKEND": "redis"})
    downstream = ScriptedDownstream("testimonial")

    async with Gateway(downstream, redis_settings, clock=fake_clock, redis_client=redis) as gateway:
        operations = [
            Operation(name="generateTestimonial", identity="user-7", payload={"i": i}) for i in range(6)
        ]
        results = [await gateway.invoke(op) for op in operations[:5]]

        with pytest.raises(RateLimitExceeded):
            await gateway.invoke(operations[5])

        # another identity has its own budget
        assert await gateway.invoke(Operation(name="generateTestimonial", identity="user-8")) == "testimonial"

    assert results == ["testimonial"] * 5
    assert downstream.call_count == 6
    # injected client is not owned by the gateway
    assert not redis.closed


@pytest.mark.asyncio
async def test_breaker_admits_single_probe_after_cooldown(settings, fake_clock):
    release = asyncio.Event()
    outcomes = iter([TransientError("down")] * 3)

    async def downstream(target, payload):
        failure = next(outcomes, None)
        if failure is not None:
            raise failure
        await release.wait()
        return "recovered"

    gateway = Gateway(
        downstream,
        settings.model_copy(update={"RETRY_MAX_ATTEMPTS": 1, "RATE_LIMIT_MAX_REQUESTS": 100}),
        clock=fake_clock,
    )

    for identity in ("a", "b", "c"):
        with pytest.raises(GatewayExhaustedError):
            await gateway.invoke(Operation(name="op", identity=identity))
    assert gateway.breakers.get_state("primary") == CircuitState.OPEN

    with pytest.raises(CircuitOpenError):
        await gateway.invoke(Operation(name="op", identity="d"))

    fake_clock.advance(settings.CB_COOLDOWN_MS / 1000)
    probe = asyncio.ensure_future(gateway.invoke(Operation(name="op", identity="e")))
    for _ in range(20):
        if gateway.breakers.get_state("primary") == CircuitState.HALF_OPEN:
            break
        await asyncio.sleep(0)
    assert gateway.breakers.get_state("primary") == CircuitState.HALF_OPEN

    racers = await asyncio.gather(
        *(gateway.invoke(Operation(name="op", identity=f"r{i}")) for i in range(5)),
        return_exceptions=True,
    )
    assert all(isinstance(r, CircuitOpenError) for r in racers)

    release.set()
    assert await probe == "recovered"
    assert gateway.breakers.get_state("primary") == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_prometheus_sink_end_to_end(settings, fake_clock):
    sink = PrometheusMetricsSink()
    gateway = Gateway(
        ScriptedDownstream(TransientError("x"), "ok"),
        settings,
        metrics=sink,
        clock=fake_clock,
        jitter=Jitter(seed=1),
    )

    await gateway.invoke(extract_skills())

    assert (
        sink.registry.get_sample_value(
            "gateway_invocation_total",
            {
                "operation": "extractSkills",
                "outcome": "success",
                "attempts": "2",
                "cache": "miss",
                "target": "primary",
            },
        )
        == 1
    )
    assert b"gateway_attempt_duration_seconds_bucket" in sink.export()
