"""
Unit Tests for Gateway.invoke_many
"""

import asyncio

import pytest

from inference_gateway.core.exceptions import GatewayExhaustedError, RateLimitExceeded, ValidationError
from inference_gateway.core.models import Operation
from tests.test_fixtures import ScriptedDownstream


def ops(count, identity="user-1"):
    return [Operation(name="generateTestimonial", identity=identity, payload={"n": i}) for i in range(count)]


async def echo(target, payload):
    return payload["n"]


@pytest.mark.unit
class TestInvokeMany:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self, make_gateway):
        async def reversed_latency(target, payload):
            await asyncio.sleep(0.001 * (5 - payload["n"]))
            return payload["n"]

        gateway = make_gateway(ScriptedDownstream(reversed_latency))

        assert await gateway.invoke_many(ops(5)) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_failures_fill_their_own_slot(self, make_gateway):
        async def fail_odd(target, payload):
            if payload["n"] % 2:
                raise ValidationError("odd input")
            return payload["n"]

        gateway = make_gateway(ScriptedDownstream(fail_odd))
        results = await gateway.invoke_many(ops(4))

        assert results[0] == 0
        assert results[2] == 2
        assert isinstance(results[1], ValidationError)
        assert isinstance(results[3], ValidationError)

    @pytest.mark.asyncio
    async def test_pauses_between_chunks_only(self, make_gateway, fake_clock):
        gateway = make_gateway(ScriptedDownstream(echo))

        await gateway.invoke_many(ops(5))  # chunks of 2 -> 3 chunks

        assert fake_clock.sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_no_pause_when_disabled(self, make_gateway, fake_clock):
        gateway = make_gateway(ScriptedDownstream(echo), BATCH_PAUSE_MS=0)
        await gateway.invoke_many(ops(4))
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, make_gateway):
        in_flight = 0
        peak = 0

        async def track(target, payload):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1
            return payload["n"]

        gateway = make_gateway(ScriptedDownstream(track), RATE_LIMIT_MAX_REQUESTS=50)
        results = await gateway.invoke_many(ops(8), batch_size=8, concurrency=3)

        assert results == list(range(8))
        assert peak == 3

    @pytest.mark.asyncio
    async def test_rate_limit_applies_per_operation(self, make_gateway):
        gateway = make_gateway(ScriptedDownstream(echo), RATE_LIMIT_MAX_REQUESTS=3)

        results = await gateway.invoke_many(ops(4), batch_size=4, concurrency=1)

        assert results[:3] == [0, 1, 2]
        assert isinstance(results[3], RateLimitExceeded)

    @pytest.mark.asyncio
    async def test_exhausted_operations_reported(self, make_gateway):
        gateway = make_gateway(ScriptedDownstream(ConnectionError("down")), RETRY_MAX_ATTEMPTS=1)

        results = await gateway.invoke_many(ops(2))

        assert all(isinstance(r, GatewayExhaustedError) for r in results)

    @pytest.mark.asyncio
    async def test_empty_input(self, make_gateway, fake_clock):
        gateway = make_gateway(ScriptedDownstream(echo))
        assert await gateway.invoke_many([]) == []
        assert fake_clock.sleeps == []

    @pytest.mark.parametrize("kwargs", [{"batch_size": -1}, {"concurrency": -2}])
    @pytest.mark.asyncio
    async def test_rejects_invalid_sizes(self, make_gateway, kwargs):
        gateway = make_gateway(ScriptedDownstream(echo))
        with pytest.raises(ValueError):
            await gateway.invoke_many(ops(2), **kwargs)
