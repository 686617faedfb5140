"""
Downstream Call Exceptions

The classified outcomes of a single attempt against the remote dependency.
Raw downstream errors are translated into one of these exactly once, at the
call boundary.
"""

from inference_gateway.core.exceptions.base import GatewayError


class ValidationError(GatewayError):
    """
    Raised when the downstream rejects the payload.

    Never retried: the same payload would be rejected again.

    Common causes:
    - Malformed request (HTTP 400 / 422)
    - Unsupported model or parameters
    - Content policy violation
    """

    outcome = "validation"
    retryable = False


class DownstreamOverloaded(GatewayError):
    """
    Raised when the downstream signals a rate or quota condition (HTTP 429,
    insufficient_quota).

    Retried, and triggers a one-time switch to the FALLBACK target.
    """

    outcome = "overloaded"
    retryable = True


class AttemptTimeoutError(GatewayError, TimeoutError):
    """
    Raised when an attempt is abandoned at its deadline.

    Also a builtin TimeoutError so generic `except TimeoutError` handlers
    in calling code keep working.
    """

    outcome = "timeout"
    retryable = True


class TransientError(GatewayError):
    """
    Generic recoverable failure (connection reset, 5xx, unknown error).
    """

    outcome = "transient"
    retryable = True


class OperationCancelledError(GatewayError):
    """
    Raised when the caller's cancellation token fires.

    The current attempt is abandoned and no further attempts are made.
    """

    outcome = "cancelled"
    retryable = False
