"""
Resilience Module

Components:
-----------
- **clock.py**: Clock protocol, SystemClock, Jitter
- **rate_limiter.py**: fixed-window limiters (in-process and Redis)
- **circuit_breaker.py**: CircuitBreaker and the per-target manager
- **classifier.py**: ErrorClassifier, raw errors -> gateway taxonomy
- **retry_executor.py**: bounded retries with backoff, jitter and timeouts
- **model_router.py**: PRIMARY / FALLBACK selection per invocation
"""

from inference_gateway.core.resilience.circuit_breaker import (
    Admission,
    CircuitBreaker,
    CircuitBreakerManager,
)
from inference_gateway.core.resilience.classifier import ErrorClassifier
from inference_gateway.core.resilience.clock import Clock, Jitter, SystemClock
from inference_gateway.core.resilience.model_router import ModelRouter, RoutingSession
from inference_gateway.core.resilience.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimiter,
    RedisRateLimiter,
)
from inference_gateway.core.resilience.retry_executor import BackoffWithJitter, RetryExecutor

__all__ = [
    "Admission",
    "BackoffWithJitter",
    "CircuitBreaker",
    "CircuitBreakerManager",
    "Clock",
    "ErrorClassifier",
    "FixedWindowRateLimiter",
    "Jitter",
    "ModelRouter",
    "RateLimiter",
    "RedisRateLimiter",
    "RetryExecutor",
    "RoutingSession",
    "SystemClock",
]
