"""
Rate Limiting Exceptions
"""

from inference_gateway.core.exceptions.base import GatewayError


class RateLimitExceeded(GatewayError):
    """
    Raised when an identity exceeds its request budget for the current window.

    Local guard: raised before the downstream is contacted and never retried.

    Details carry identity, limit, window_ms and retry_after_ms so callers
    can build a Retry-After response.
    """

    outcome = "rate_limited"
    retryable = False
