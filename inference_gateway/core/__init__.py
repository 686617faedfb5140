"""
Core Module

Foundational components: configuration, logging, exceptions, data model,
collaborator protocols and the resilience primitives.
"""

from .exceptions import (
    AttemptTimeoutError,
    CircuitOpenError,
    ConfigurationError,
    DownstreamOverloaded,
    GatewayError,
    GatewayExhaustedError,
    OperationCancelledError,
    RateLimitExceeded,
    TransientError,
    ValidationError,
)
from .logging import (
    clear_invocation_id,
    get_invocation_id,
    get_logger,
    log_stage,
    set_invocation_id,
    setup_logging,
)

__all__ = [
    # Exceptions
    "AttemptTimeoutError",
    "CircuitOpenError",
    "ConfigurationError",
    "DownstreamOverloaded",
    "GatewayError",
    "GatewayExhaustedError",
    "OperationCancelledError",
    "RateLimitExceeded",
    "TransientError",
    "ValidationError",
    # Logging
    "clear_invocation_id",
    "get_invocation_id",
    "get_logger",
    "log_stage",
    "set_invocation_id",
    "setup_logging",
]
