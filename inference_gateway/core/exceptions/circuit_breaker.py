"""
Circuit Breaker Exceptions
"""

from inference_gateway.core.exceptions.base import GatewayError


class CircuitOpenError(GatewayError):
    """
    Raised when circuit breaker is open (fail fast).

    Requests are rejected without touching the downstream until the cooldown
    elapses, at which point a single probe is admitted. Also raised to callers
    that race a probe already in flight.

    Common causes:
    - Too many consecutive failures
    - Downstream is down
    - Timeout threshold exceeded
    """

    outcome = "circuit_open"
    retryable = False
