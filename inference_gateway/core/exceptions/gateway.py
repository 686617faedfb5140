"""
Gateway Exhaustion Exception
"""

from typing import TYPE_CHECKING, Any

from inference_gateway.core.exceptions.base import GatewayError

if TYPE_CHECKING:
    from inference_gateway.core.models import AttemptRecord


class GatewayExhaustedError(GatewayError):
    """
    Raised after `max_attempts` retryable failures.

    The only error type that carries an attempt count and total elapsed time.
    The last classified failure is chained as `__cause__` and kept as
    `last_error`.

    Attributes:
        attempts: Number of downstream attempts performed
        elapsed_ms: Wall time spent in the retry loop, backoff included
        last_error: The classified error of the final attempt
        records: AttemptRecords of the run, in order
    """

    outcome = "exhausted"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        elapsed_ms: float,
        last_error: GatewayError,
        records: list["AttemptRecord"] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details=details)
        self.attempts = attempts
        self.elapsed_ms = elapsed_ms
        self.last_error = last_error
        self.records = list(records or [])
        self.details.setdefault("attempts", attempts)
        self.details.setdefault("elapsed_ms", round(elapsed_ms, 2))
        self.details.setdefault("last_outcome", last_error.outcome)
