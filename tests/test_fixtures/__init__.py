"""
Test Fixtures Package

Deterministic stand-ins for the gateway's collaborators: time, metrics,
Redis and the downstream call.
"""

from .clock_factory import FakeClock, FixedJitter
from .downstream_factory import ScriptedDownstream, StatusError
from .metrics_factory import FailingMetricsSink, RecordingMetricsSink
from .redis_factory import FailingRedis, InMemoryRedis

__all__ = [
    "FailingMetricsSink",
    "FailingRedis",
    "FakeClock",
    "FixedJitter",
    "InMemoryRedis",
    "RecordingMetricsSink",
    "ScriptedDownstream",
    "StatusError",
]
