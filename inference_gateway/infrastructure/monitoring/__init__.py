from inference_gateway.infrastructure.monitoring.metrics_collector import (
    NullMetricsSink,
    PrometheusMetricsSink,
    SafeMetricsSink,
    safe_sink,
)

__all__ = ["NullMetricsSink", "PrometheusMetricsSink", "SafeMetricsSink", "safe_sink"]
