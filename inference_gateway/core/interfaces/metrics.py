"""
Metrics Sink Protocol

The gateway reports counters and timings through this interface and never
depends on a particular metrics backend.

Implementations:
- PrometheusMetricsSink: prometheus-client counters/histograms
- NullMetricsSink: discards everything
- SafeMetricsSink: wrapper that guarantees sink failures never reach callers
"""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

Tags = Mapping[str, object]


@runtime_checkable
class MetricsSink(Protocol):
    """
    Fire-and-forget metrics interface.

    Both methods are synchronous: recording a metric must never suspend the
    caller. Implementations may raise; the gateway always wraps the sink it is
    given in a SafeMetricsSink.
    """

    def increment(self, name: str, value: float = 1, tags: Tags | None = None) -> None:
        """Add `value` to the counter `name`."""
        ...

    def timing(self, name: str, duration_ms: float, tags: Tags | None = None) -> None:
        """Record a duration in milliseconds."""
        ...
