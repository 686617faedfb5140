"""
Exception Module

Structured exception hierarchy for the inference gateway, organized by theme.

Module Structure:
-----------------
- **base.py**: GatewayError base class + ConfigurationError
- **rate_limit.py**: RateLimitExceeded
- **circuit_breaker.py**: CircuitOpenError
- **downstream.py**: classified attempt outcomes (validation, overload, timeout,
  transient, cancellation)
- **gateway.py**: GatewayExhaustedError
- **cache.py**: cache backend errors (never surfaced to callers)

Usage:
------
```python
from inference_gateway.core.exceptions import GatewayError, RateLimitExceeded

try:
    result = await gateway.invoke(operation)
except RateLimitExceeded as e:
    retry_after = e.details["retry_after_ms"]
except GatewayError as e:
    logger.error("AI call failed", **e.to_dict())
```
"""

from inference_gateway.core.exceptions.base import ConfigurationError, GatewayError
from inference_gateway.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheSerializationError,
)
from inference_gateway.core.exceptions.circuit_breaker import CircuitOpenError
from inference_gateway.core.exceptions.downstream import (
    AttemptTimeoutError,
    DownstreamOverloaded,
    OperationCancelledError,
    TransientError,
    ValidationError,
)
from inference_gateway.core.exceptions.gateway import GatewayExhaustedError
from inference_gateway.core.exceptions.rate_limit import RateLimitExceeded

__all__ = [
    # Base
    "GatewayError",
    "ConfigurationError",
    # Local guards
    "RateLimitExceeded",
    "CircuitOpenError",
    # Downstream outcomes
    "ValidationError",
    "DownstreamOverloaded",
    "AttemptTimeoutError",
    "TransientError",
    "OperationCancelledError",
    # Exhaustion
    "GatewayExhaustedError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheSerializationError",
]
