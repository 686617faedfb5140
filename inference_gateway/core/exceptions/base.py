"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions
inherit from. Specialized exceptions live in their themed modules.
"""

from typing import Any, ClassVar


class GatewayError(Exception):
    """
    Base exception for every error the gateway surfaces to callers.

    Each subclass is tagged with:
        outcome: short code used in logs, metrics and AttemptRecords
        retryable: whether the RetryExecutor may attempt the call again

    Attributes:
        message: Error message
        details: Additional error details (dict). The gateway fills in
            operation, identity, attempts and elapsed_ms before re-raising.

    Example:
        raise TransientError(
            "Connection reset by peer",
            details={"target": "primary", "attempt": 2},
        )
    """

    outcome: ClassVar[str] = "error"
    retryable: ClassVar[bool] = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, outcome, message, details and the cause type
        """
        cause = self.__cause__
        return {
            "error_type": self.__class__.__name__,
            "outcome": self.outcome,
            "message": self.message,
            "details": self.details,
            "cause": cause.__class__.__name__ if cause is not None else None,
        }

    def with_context(self, **context) -> "GatewayError":
        """
        Add additional context to the error details.

        Existing keys are kept, so the innermost layer that knew a value wins.

        Returns:
            Self (for method chaining)
        """
        for key, value in context.items():
            self.details.setdefault(key, value)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        return f"{self.__class__.__name__}(message='{self.message}'{details_str})"

    @classmethod
    def from_exception(cls, exc: BaseException, message: str | None = None, **details) -> "GatewayError":
        """
        Create a gateway error from another exception.

        The caller is expected to `raise ... from exc` so the cause chain stays
        intact; the original type and message are copied into details.

        Example:
            >>> try:
            ...     await client.chat.completions.create(...)
            ... except httpx.ConnectError as e:
            ...     raise TransientError.from_exception(e, target="primary") from e
        """
        error_message = message or str(exc) or exc.__class__.__name__
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details,
        }
        return cls(error_message, details=error_details)


class ConfigurationError(GatewayError):
    """Raised when configuration is invalid or missing."""

    outcome = "configuration"
