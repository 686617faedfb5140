"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from inference_gateway.core.config.settings import Settings  # noqa: E402
from inference_gateway.infrastructure.cache import InMemoryCacheBackend  # noqa: E402
from tests.test_fixtures import (  # noqa: E402
    FakeClock,
    FixedJitter,
    InMemoryRedis,
    RecordingMetricsSink,
)

# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """
    Settings with small, test-friendly values.

    Built explicitly so no .env file or environment variable leaks in.
    """
    return Settings(
        _env_file=None,
        RATE_LIMIT_WINDOW_MS=60_000,
        RATE_LIMIT_MAX_REQUESTS=5,
        CB_FAILURE_THRESHOLD=3,
        CB_COOLDOWN_MS=30_000,
        RETRY_MAX_ATTEMPTS=3,
        RETRY_BASE_DELAY_MS=1_000,
        RETRY_MAX_DELAY_MS=5_000,
        RETRY_JITTER_MS=1_000,
        DEFAULT_TIMEOUT_MS=2_000,
        CACHE_ENABLED=True,
        CACHE_TTL=3_600,
        CACHE_BACKEND="memory",
        BATCH_SIZE=2,
        BATCH_CONCURRENCY=2,
        BATCH_PAUSE_MS=1_000,
        LOG_LEVEL="DEBUG",
        LOG_FORMAT="console",
    )


# ============================================================================
# Deterministic Collaborators
# ============================================================================


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def no_jitter():
    return FixedJitter(0.0)


@pytest.fixture
def metrics_sink():
    return RecordingMetricsSink()


@pytest.fixture
def in_memory_redis_client():
    """In-memory Redis stand-in implementing the commands the gateway uses."""
    return InMemoryRedis()


@pytest.fixture
def memory_backend(fake_clock):
    return InMemoryCacheBackend(max_size=100, clock=fake_clock)


@pytest.fixture
def make_gateway(settings, fake_clock, no_jitter, metrics_sink):
    """
    Factory for gateways wired to the fake clock and recording sink.

    Usage:
        gateway = make_gateway(ScriptedDownstream("ok"), RETRY_MAX_ATTEMPTS=2)
    """
    from inference_gateway.gateway import Gateway

    def _make(call, **overrides):
        gateway_settings = settings.model_copy(update=overrides) if overrides else settings
        return Gateway(
            call,
            gateway_settings,
            metrics=metrics_sink,
            clock=fake_clock,
            jitter=no_jitter,
        )

    return _make
