"""
System Constants and Enumerations

Architectural Decision: Centralized constants for maintainability
- Single source of truth for metric names and stage labels
- Type-safe enums for state management
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Invocation stages used to tag log lines.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}, cross-cutting concerns use a
    letter prefix instead of a number.
    """

    # Main invocation lifecycle
    INVOCATION = "0.0_INVOCATION"
    CACHE_LOOKUP = "1.0_CACHE_LOOKUP"
    RATE_LIMITING = "2.0_RATE_LIMITING"
    TARGET_SELECTION = "3.0_TARGET_SELECTION"
    DOWNSTREAM_CALL = "4.0_DOWNSTREAM_CALL"
    CACHE_WRITE = "5.0_CACHE_WRITE"
    SUMMARY = "6.0_SUMMARY"

    # Cross-cutting concerns
    CIRCUIT_BREAKER = "CB_CIRCUIT_BREAKER"
    RETRY = "R_RETRY_LOGIC"
    BATCH = "B_BATCH"
    METRICS = "M_METRICS_COLLECTION"


# ============================================================================
# Circuit Breaker States
# ============================================================================


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    CLOSED: Normal operation, requests allowed
    OPEN: Failing fast, requests blocked
    HALF_OPEN: One probe request in flight
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# ============================================================================
# Target Roles
# ============================================================================


class TargetRole(str, Enum):
    """Downstream capability a call is routed to."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


# ============================================================================
# Cache status reported in the invocation summary
# ============================================================================


class CacheStatus(str, Enum):
    HIT = "hit"
    MISS = "miss"
    BYPASS = "bypass"


# ============================================================================
# Metric Names
# ============================================================================

METRIC_ATTEMPT_DURATION = "gateway.attempt.duration"
METRIC_INVOCATION_DURATION = "gateway.invocation.duration"
METRIC_INVOCATION_COUNT = "gateway.invocation"
METRIC_CACHE_LOOKUP = "gateway.cache.lookup"
METRIC_CACHE_ERROR = "gateway.cache.error"
METRIC_BREAKER_TRANSITION = "gateway.breaker.transition"
METRIC_BREAKER_REJECTED = "gateway.breaker.rejected"
METRIC_RATE_LIMITED = "gateway.rate_limit.exceeded"
METRIC_FALLBACK_SWITCH = "gateway.router.fallback"

# ============================================================================
# Redis Key Prefixes
# ============================================================================

REDIS_KEY_RATE_LIMIT = "ratelimit"

# Sweep idle limiter identities once every N checks
RATE_LIMIT_SWEEP_INTERVAL = 256

# Cancellation message the retry executor attaches when it abandons an attempt
# at its deadline
ATTEMPT_TIMEOUT_CANCEL_MSG = "gateway-attempt-timeout"

# How long a cancelled attempt gets to unwind before it is left behind
ATTEMPT_ABANDON_GRACE_MS = 100
