"""
Unit Tests for CacheAside

Hit/miss behaviour, empty-result rule, key normalization, and the guarantee
that backend failures never escape while compute failures always do.
"""

from unittest.mock import AsyncMock

import pytest

from inference_gateway.core.config.constants import METRIC_CACHE_ERROR, METRIC_CACHE_LOOKUP
from inference_gateway.core.exceptions import CacheConnectionError, TransientError
from inference_gateway.infrastructure.cache import CacheAside, InMemoryCacheBackend, is_empty_result
from tests.test_fixtures import RecordingMetricsSink


def counting(value):
    """Zero-arg compute function returning `value` and counting calls."""

    async def compute():
        compute.calls += 1
        return value

    compute.calls = 0
    return compute


@pytest.fixture
def sink():
    return RecordingMetricsSink()


@pytest.fixture
def cache(memory_backend, sink):
    return CacheAside(memory_backend, key_prefix="ai_service", default_ttl=60, metrics=sink)


@pytest.fixture
def broken_backend():
    backend = AsyncMock()
    backend.get.side_effect = CacheConnectionError("down")
    backend.set.side_effect = CacheConnectionError("down")
    backend.delete.side_effect = CacheConnectionError("down")
    return backend


@pytest.mark.unit
class TestGetOrCompute:
    @pytest.mark.asyncio
    async def test_miss_computes_and_stores(self, cache, memory_backend):
        compute = counting({"skills": ["python"]})

        assert await cache.get_or_compute("k", compute) == {"skills": ["python"]}
        assert compute.calls == 1
        assert await memory_backend.get("k") == {"skills": ["python"]}

    @pytest.mark.asyncio
    async def test_hit_skips_compute(self, cache):
        compute = counting("value")

        await cache.get_or_compute("k", compute)
        assert await cache.get_or_compute("k", compute) == "value"
        assert compute.calls == 1
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    @pytest.mark.parametrize("empty", [None, "", [], {}])
    @pytest.mark.asyncio
    async def test_empty_results_not_cached(self, cache, empty):
        compute = counting(empty)

        await cache.get_or_compute("k", compute)
        await cache.get_or_compute("k", compute)

        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_falsy_but_meaningful_values_are_cached(self, cache):
        compute = counting(0)
        await cache.get_or_compute("k", compute)
        await cache.get_or_compute("k", compute)
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_compute_errors_propagate_and_are_not_retried(self, cache):
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            raise TransientError("downstream failed")

        with pytest.raises(TransientError):
            await cache.get_or_compute("k", compute)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_ttl_respected(self, cache, fake_clock):
        compute = counting("v")
        await cache.get_or_compute("k", compute, ttl=10)

        fake_clock.advance(11)
        await cache.get_or_compute("k", compute, ttl=10)

        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_lookup_metrics(self, cache, sink):
        compute = counting("v")
        await cache.get_or_compute("k", compute)
        await cache.get_or_compute("k", compute)

        assert sink.counter_total(METRIC_CACHE_LOOKUP, result="miss") == 1
        assert sink.counter_total(METRIC_CACHE_LOOKUP, result="hit") == 1


@pytest.mark.unit
class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_read_failure_falls_back_to_compute(self, broken_backend, sink):
        cache = CacheAside(broken_backend, metrics=sink)
        compute = counting("fresh")

        assert await cache.get_or_compute("k", compute) == "fresh"
        assert compute.calls == 1
        assert cache.stats()["errors"] == 2  # read and write
        assert sink.counter_total(METRIC_CACHE_ERROR, operation="read") == 1
        assert sink.counter_total(METRIC_CACHE_ERROR, operation="write") == 1

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, memory_backend):
        memory_backend.set = AsyncMock(side_effect=RuntimeError("disk full"))
        cache = CacheAside(memory_backend)

        assert await cache.get_or_compute("k", counting("v")) == "v"

    @pytest.mark.asyncio
    async def test_invalidate_swallows_failures(self, broken_backend):
        assert await CacheAside(broken_backend).invalidate("k") is False

    @pytest.mark.asyncio
    async def test_invalidate_removes_key(self, cache):
        compute = counting("v")
        await cache.get_or_compute("k", compute)

        assert await cache.invalidate("k") is True
        await cache.get_or_compute("k", compute)
        assert compute.calls == 2


@pytest.mark.unit
class TestKeys:
    def test_key_layout(self, cache):
        key = cache.make_key("extractSkills", {"text": "hello"})
        prefix, name, digest = key.split(":")
        assert prefix == "ai_service"
        assert name == "extractSkills"
        assert len(digest) == 64

    def test_key_ignores_dict_ordering(self, cache):
        a = cache.make_key("op", {"a": 1, "b": {"x": 1, "y": 2}})
        b = cache.make_key("op", {"b": {"y": 2, "x": 1}, "a": 1})
        assert a == b

    def test_key_differs_by_payload_and_name(self, cache):
        assert cache.make_key("op", {"a": 1}) != cache.make_key("op", {"a": 2})
        assert cache.make_key("op1", {"a": 1}) != cache.make_key("op2", {"a": 1})

    def test_key_accepts_non_json_values(self, cache):
        class Opaque:
            def __str__(self):
                return "opaque"

        assert cache.make_key("op", {"value": Opaque()}) == cache.make_key("op", {"value": Opaque()})


@pytest.mark.unit
class TestEmptyResult:
    @pytest.mark.parametrize("value", [None, "", b"", [], (), {}, set()])
    def test_empty(self, value):
        assert is_empty_result(value)

    @pytest.mark.parametrize("value", [0, False, "x", [0], {"a": None}])
    def test_not_empty(self, value):
        assert not is_empty_result(value)


@pytest.mark.unit
class TestInMemoryBackendInCacheAside:
    @pytest.mark.asyncio
    async def test_works_with_default_clock(self):
        cache = CacheAside(InMemoryCacheBackend(max_size=2))
        assert await cache.get_or_compute("k", counting("v")) == "v"
