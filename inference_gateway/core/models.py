"""
Gateway data model.

Operation    - what the caller asks for (immutable, per call)
Target       - where an attempt is routed (PRIMARY / FALLBACK)
RetryPolicy  - how many times and how patiently to try
AttemptRecord - what happened on one attempt (transient)
CacheEntry   - a memoized result with its TTL
"""

import uuid
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from inference_gateway.core.config.constants import TargetRole
from inference_gateway.core.config.settings import Settings


class Operation(BaseModel):
    """
    One call through the gateway.

    Created by the caller, immutable, never persisted beyond the call.
    Optional knobs left as None fall back to the gateway settings.
    """

    model_config = {"frozen": True}

    name: str = Field(..., min_length=1, description="Logical operation name, e.g. 'extractSkills'")
    identity: str = Field(..., min_length=1, description="Caller key for rate limiting")
    payload: Any = Field(default=None, description="Opaque payload handed to the downstream")
    timeout_ms: int | None = Field(default=None, gt=0, description="Per-attempt timeout")
    cacheable: bool = Field(default=False, description="Memoize successful results")
    cache_ttl: int | None = Field(default=None, gt=0, description="Cache TTL in seconds")
    max_attempts: int | None = Field(default=None, gt=0, description="Attempt budget")
    invocation_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Correlation ID for logs",
    )


@dataclass(frozen=True)
class Target:
    """A downstream capability an attempt can be routed to."""

    name: str
    role: TargetRole
    model: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.role == TargetRole.FALLBACK


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry policy.

    delay(attempt) = min(max_delay_ms, base_delay_ms * 2^(attempt-1) + uniform(0, jitter_ms))
    """

    max_attempts: int = 3
    base_delay_ms: int = 1_000
    max_delay_ms: int = 5_000
    jitter_ms: int = 1_000
    timeout_ms: int = 10_000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        retry = settings.retry
        return cls(
            max_attempts=retry.RETRY_MAX_ATTEMPTS,
            base_delay_ms=retry.RETRY_BASE_DELAY_MS,
            max_delay_ms=retry.RETRY_MAX_DELAY_MS,
            jitter_ms=retry.RETRY_JITTER_MS,
            timeout_ms=retry.DEFAULT_TIMEOUT_MS,
        )

    def for_operation(self, operation: Operation) -> "RetryPolicy":
        """Apply the operation's own timeout / attempt budget, if any."""
        return RetryPolicy(
            max_attempts=operation.max_attempts or self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            jitter_ms=self.jitter_ms,
            timeout_ms=operation.timeout_ms or self.timeout_ms,
        )


@dataclass
class AttemptRecord:
    """
    Outcome of a single attempt inside one RetryExecutor run.

    Used for backoff bookkeeping, routing decisions and error aggregation;
    never persisted.
    """

    attempt_number: int
    started_at: float
    target: str | None = None
    outcome: str | None = None
    duration_ms: float | None = None
    error: Exception | None = field(default=None, repr=False)
    # Rejected by a local guard (open circuit) before reaching the downstream
    rejected: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome == "success"


def attempts_made(records: list[AttemptRecord]) -> int:
    """Attempts that actually reached the downstream."""
    return sum(1 for record in records if not record.rejected)


@dataclass
class CacheEntry:
    """A memoized result held by an in-process cache backend."""

    key: str
    value: Any
    stored_at: float
    ttl: int

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl
