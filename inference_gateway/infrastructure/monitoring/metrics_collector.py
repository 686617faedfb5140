"""
Metrics Sinks with Prometheus Integration

Implementations of the MetricsSink protocol:
- PrometheusMetricsSink: prometheus-client counters and histograms
- NullMetricsSink: discards everything (default when no sink is configured)
- SafeMetricsSink: wrapper that logs and swallows sink failures

Architectural Decision: prometheus-client for industry-standard metrics
- Compatible with Grafana dashboards
- Histogram buckets for latency percentiles

Metric families are created lazily from the dotted gateway names
(`gateway.attempt.duration` -> `gateway_attempt_duration_seconds`), with the
first call's tag keys as label names. Each sink owns its CollectorRegistry,
so several gateways in one process never collide.
"""

from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

from inference_gateway.core.config.constants import Stage
from inference_gateway.core.interfaces.metrics import MetricsSink, Tags
from inference_gateway.core.logging import get_logger, log_stage

logger = get_logger(__name__)

LATENCY_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def _metric_name(name: str) -> str:
    return name.replace(".", "_").replace("-", "_")


class PrometheusMetricsSink:
    """
    MetricsSink backed by prometheus-client.

    Usage:
        sink = PrometheusMetricsSink()
        gateway = Gateway(call, metrics=sink)
        ...
        body = sink.export()  # Prometheus text format
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: CollectorRegistry | None = None, namespace: str = ""):
        self.registry = registry or CollectorRegistry()
        self._namespace = namespace
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        # Label names each metric was created with, keyed by (kind, name)
        self._label_names: dict[tuple[str, str], tuple[str, ...]] = {}

    def increment(self, name: str, value: float = 1, tags: Tags | None = None) -> None:
        labels = self._labels(tags)
        counter = self._counters.get(name)
        if counter is None:
            self._label_names[("counter", name)] = tuple(sorted(labels))
            counter = Counter(
                _metric_name(name),
                f"Gateway counter {name}",
                sorted(labels),
                namespace=self._namespace,
                registry=self.registry,
            )
            self._counters[name] = counter
        self._observe(counter, ("counter", name), labels, lambda metric: metric.inc(value))

    def timing(self, name: str, duration_ms: float, tags: Tags | None = None) -> None:
        labels = self._labels(tags)
        histogram = self._histograms.get(name)
        if histogram is None:
            self._label_names[("histogram", name)] = tuple(sorted(labels))
            histogram = Histogram(
                f"{_metric_name(name)}_seconds",
                f"Gateway timing {name}",
                sorted(labels),
                namespace=self._namespace,
                buckets=LATENCY_BUCKETS,
                registry=self.registry,
            )
            self._histograms[name] = histogram
        self._observe(
            histogram, ("histogram", name), labels, lambda metric: metric.observe(duration_ms / 1000)
        )

    def export(self) -> bytes:
        """Current registry contents in the Prometheus exposition format."""
        return generate_latest(self.registry)

    @staticmethod
    def _labels(tags: Tags | None) -> dict[str, str]:
        return {str(k): str(v) for k, v in (tags or {}).items()}

    def _observe(self, metric: Any, key: tuple[str, str], labels: dict[str, str], record) -> None:
        expected = self._label_names[key]
        if tuple(sorted(labels)) != expected:
            logger.debug(
                "Dropping metric with unexpected labels",
                metric=key[1],
                expected=list(expected),
                got=sorted(labels),
            )
            return
        record(metric.labels(**labels) if expected else metric)


class NullMetricsSink:
    """Sink that records nothing."""

    def increment(self, name: str, value: float = 1, tags: Tags | None = None) -> None:
        return None

    def timing(self, name: str, duration_ms: float, tags: Tags | None = None) -> None:
        return None


class SafeMetricsSink:
    """
    Wraps any MetricsSink so that a failing sink never affects a call.

    Failures are logged at warning level and otherwise ignored.
    """

    def __init__(self, inner: MetricsSink):
        self._inner = inner

    @property
    def inner(self) -> MetricsSink:
        return self._inner

    def increment(self, name: str, value: float = 1, tags: Tags | None = None) -> None:
        try:
            self._inner.increment(name, value, tags)
        except Exception as e:
            log_stage(
                logger,
                Stage.METRICS,
                "Metrics sink failed",
                level="warning",
                metric=name,
                error=str(e),
            )

    def timing(self, name: str, duration_ms: float, tags: Tags | None = None) -> None:
        try:
            self._inner.timing(name, duration_ms, tags)
        except Exception as e:
            log_stage(
                logger,
                Stage.METRICS,
                "Metrics sink failed",
                level="warning",
                metric=name,
                error=str(e),
            )


def safe_sink(metrics: MetricsSink | None) -> SafeMetricsSink:
    """Wrap `metrics` (or a NullMetricsSink) once; already-safe sinks pass through."""
    if isinstance(metrics, SafeMetricsSink):
        return metrics
    return SafeMetricsSink(metrics if metrics is not None else NullMetricsSink())
