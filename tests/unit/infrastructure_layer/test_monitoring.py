"""
Unit Tests for the Metrics Sinks
"""

import pytest

from inference_gateway.core.interfaces.metrics import MetricsSink
from inference_gateway.infrastructure.monitoring import (
    NullMetricsSink,
    PrometheusMetricsSink,
    SafeMetricsSink,
    safe_sink,
)
from tests.test_fixtures import FailingMetricsSink, RecordingMetricsSink


@pytest.mark.unit
class TestPrometheusMetricsSink:
    def test_counter_with_tags(self):
        sink = PrometheusMetricsSink()
        sink.increment("gateway.invocation", tags={"operation": "extractSkills", "outcome": "success"})
        sink.increment("gateway.invocation", tags={"outcome": "success", "operation": "extractSkills"})

        value = sink.registry.get_sample_value(
            "gateway_invocation_total", {"operation": "extractSkills", "outcome": "success"}
        )
        assert value == 2

    def test_counter_without_tags(self):
        sink = PrometheusMetricsSink()
        sink.increment("gateway.router.fallback", value=3)
        assert sink.registry.get_sample_value("gateway_router_fallback_total") == 3

    def test_timing_recorded_in_seconds(self):
        sink = PrometheusMetricsSink()
        sink.timing("gateway.attempt.duration", 250, tags={"attempt": 1})

        assert sink.registry.get_sample_value("gateway_attempt_duration_seconds_sum", {"attempt": "1"}) == 0.25
        assert sink.registry.get_sample_value("gateway_attempt_duration_seconds_count", {"attempt": "1"}) == 1

    def test_mismatched_labels_are_dropped(self):
        sink = PrometheusMetricsSink()
        sink.increment("gateway.cache.lookup", tags={"result": "hit"})
        sink.increment("gateway.cache.lookup", tags={"other": "x"})

        assert sink.registry.get_sample_value("gateway_cache_lookup_total", {"result": "hit"}) == 1

    def test_counter_and_timing_keep_their_own_labels(self):
        sink = PrometheusMetricsSink()
        sink.increment("gateway.downstream", tags={"target": "primary"})
        sink.timing("gateway.downstream", 100, tags={"attempt": 1})
        sink.timing("gateway.downstream", 100, tags={"target": "primary"})

        assert sink.registry.get_sample_value("gateway_downstream_total", {"target": "primary"}) == 1
        assert sink.registry.get_sample_value("gateway_downstream_seconds_count", {"attempt": "1"}) == 1

    def test_registries_are_isolated(self):
        first, second = PrometheusMetricsSink(), PrometheusMetricsSink()
        first.increment("gateway.invocation")
        second.increment("gateway.invocation")
        assert first.registry.get_sample_value("gateway_invocation_total") == 1

    def test_export(self):
        sink = PrometheusMetricsSink()
        sink.increment("gateway.invocation")
        assert b"gateway_invocation_total" in sink.export()

    def test_satisfies_protocol(self):
        assert isinstance(PrometheusMetricsSink(), MetricsSink)


@pytest.mark.unit
class TestSafeMetricsSink:
    def test_swallows_failures(self):
        sink = SafeMetricsSink(FailingMetricsSink())
        sink.increment("x")
        sink.timing("x", 1.0)

    def test_forwards_calls(self):
        inner = RecordingMetricsSink()
        sink = SafeMetricsSink(inner)
        sink.increment("x", 2, tags={"a": 1})
        sink.timing("y", 5.0)

        assert inner.increments == [("x", 2, {"a": 1})]
        assert inner.timings == [("y", 5.0, {})]

    def test_safe_sink_helper(self):
        already = SafeMetricsSink(NullMetricsSink())
        assert safe_sink(already) is already
        assert isinstance(safe_sink(None).inner, NullMetricsSink)
