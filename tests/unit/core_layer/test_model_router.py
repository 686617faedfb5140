"""
Unit Tests for ModelRouter

PRIMARY by default, a single sticky downgrade to FALLBACK on overload, and
isolation between invocations.
"""

import pytest

from inference_gateway.core.config.constants import METRIC_FALLBACK_SWITCH, TargetRole
from inference_gateway.core.exceptions import AttemptTimeoutError, DownstreamOverloaded, TransientError
from inference_gateway.core.models import Target
from inference_gateway.core.resilience.model_router import ModelRouter
from tests.test_fixtures import RecordingMetricsSink


@pytest.fixture
def sink():
    return RecordingMetricsSink()


@pytest.fixture
def router(sink):
    return ModelRouter(
        primary=Target("primary", TargetRole.PRIMARY, "gpt-4"),
        fallback=Target("fallback", TargetRole.FALLBACK, "gpt-3.5-turbo"),
        metrics=sink,
    )


@pytest.mark.unit
class TestModelRouter:
    def test_first_attempt_uses_primary(self, router):
        session = router.for_invocation()
        assert session.select(1, None).role == TargetRole.PRIMARY

    def test_non_overload_failures_stay_on_primary(self, router):
        session = router.for_invocation()
        assert session.select(2, TransientError("x")).name == "primary"
        assert session.select(3, AttemptTimeoutError("x")).name == "primary"
        assert not session.downgraded

    def test_overload_switches_to_fallback(self, router, sink):
        session = router.for_invocation()
        session.select(1, None)

        target = session.select(2, DownstreamOverloaded("429"))

        assert target.is_fallback
        assert target.model == "gpt-3.5-turbo"
        assert sink.counter_total(METRIC_FALLBACK_SWITCH) == 1

    def test_never_switches_back(self, router, sink):
        session = router.for_invocation()
        session.select(2, DownstreamOverloaded("429"))

        assert session.select(3, TransientError("x")).is_fallback
        assert session.select(4, None).is_fallback
        assert session.select(5, DownstreamOverloaded("again")).is_fallback
        assert sink.counter_total(METRIC_FALLBACK_SWITCH) == 1

    def test_sessions_are_independent(self, router):
        downgraded = router.for_invocation()
        downgraded.select(2, DownstreamOverloaded("429"))

        fresh = router.for_invocation()
        assert fresh.select(1, None).name == "primary"
        assert fresh.select(2, TransientError("x")).name == "primary"

    def test_fallback_disabled_always_primary(self):
        router = ModelRouter(
            primary=Target("primary", TargetRole.PRIMARY),
            fallback=Target("fallback", TargetRole.FALLBACK),
            fallback_enabled=False,
        )
        session = router.for_invocation()
        assert session.select(2, DownstreamOverloaded("429")).name == "primary"

    def test_from_settings(self, settings):
        router = ModelRouter.from_settings(settings)
        assert router.primary.model == settings.PRIMARY_MODEL
        assert router.fallback.model == settings.FALLBACK_MODEL

    def test_rejects_mismatched_roles(self):
        with pytest.raises(ValueError):
            ModelRouter(
                primary=Target("a", TargetRole.FALLBACK),
                fallback=Target("b", TargetRole.FALLBACK),
            )
