#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
inference gateway. Every tunable of the resilience layer lives here so the
rate limiter, circuit breaker, retry executor and cache all read from one place.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Nested read-only views per component (settings.retry, settings.cache, ...)
- Easy testing: pass an explicit Settings(...) to a Gateway
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the shared cache and the distributed rate limiter.
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Fixed-window rate limiting per caller identity.

    Default budget: 50 requests per minute.
    """

    RATE_LIMIT_WINDOW_MS: int = Field(default=60_000, gt=0, description="Window size in ms")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=50, gt=0, description="Requests allowed per window")
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = Field(default="memory")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CircuitBreakerSettings(BaseSettings):
    """
    Circuit breaker configuration for fault tolerance.

    One breaker is kept per downstream target; all share these thresholds.
    """

    CB_FAILURE_THRESHOLD: int = Field(default=5, gt=0, description="Failures before opening circuit")
    CB_COOLDOWN_MS: int = Field(default=30_000, ge=0, description="Open duration before a probe")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RetrySettings(BaseSettings):
    """
    Bounded retry with exponential backoff and jitter.

    delay(i) = min(max_delay, base_delay * 2^(i-1) + uniform(0, jitter))
    """

    RETRY_MAX_ATTEMPTS: int = Field(default=3, gt=0, description="Attempts per invocation")
    RETRY_BASE_DELAY_MS: int = Field(default=1_000, ge=0, description="First backoff delay")
    RETRY_MAX_DELAY_MS: int = Field(default=5_000, ge=0, description="Backoff ceiling")
    RETRY_JITTER_MS: int = Field(default=1_000, ge=0, description="Upper bound of added jitter")
    DEFAULT_TIMEOUT_MS: int = Field(default=10_000, gt=0, description="Per-attempt timeout")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache-aside configuration.

    Optimization: results of expensive LLM calls are kept for a day by default.
    """

    CACHE_ENABLED: bool = Field(default=True, description="Master switch for cache-aside")
    CACHE_TTL: int = Field(default=86_400, gt=0, description="Default TTL in seconds (24 hours)")
    CACHE_KEY_PREFIX: str = Field(default="ai_service", description="Namespace for cache keys")
    CACHE_BACKEND: Literal["memory", "redis"] = Field(default="memory")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=1_000, gt=0, description="In-memory max entries")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RoutingSettings(BaseSettings):
    """
    Primary / fallback downstream targets.
    """

    PRIMARY_MODEL: str = Field(default="gpt-4", description="Model used by the PRIMARY target")
    FALLBACK_MODEL: str = Field(default="gpt-3.5-turbo", description="Model used by the FALLBACK target")
    FALLBACK_ENABLED: bool = Field(default=True, description="Allow downgrade on overload")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class BatchSettings(BaseSettings):
    """Chunked batch invocation."""

    BATCH_SIZE: int = Field(default=5, gt=0)
    BATCH_CONCURRENCY: int = Field(default=3, gt=0)
    BATCH_PAUSE_MS: int = Field(default=1_000, ge=0, description="Pause between chunks")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from inference_gateway.core.config.settings import get_settings

        settings = get_settings()
        settings.retry.RETRY_MAX_ATTEMPTS
        settings.circuit_breaker.CB_COOLDOWN_MS

    Fields are flat so each one maps to a single environment variable; the
    component views are built from them on access.
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")

    # Rate limiting
    RATE_LIMIT_WINDOW_MS: int = Field(default=60_000, gt=0, description="Window size in ms")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=50, gt=0, description="Requests allowed per window")
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = Field(default="memory")

    # Circuit breaker
    CB_FAILURE_THRESHOLD: int = Field(default=5, gt=0, description="Failures before opening circuit")
    CB_COOLDOWN_MS: int = Field(default=30_000, ge=0, description="Open duration before a probe")

    # Retry
    RETRY_MAX_ATTEMPTS: int = Field(default=3, gt=0, description="Attempts per invocation")
    RETRY_BASE_DELAY_MS: int = Field(default=1_000, ge=0, description="First backoff delay")
    RETRY_MAX_DELAY_MS: int = Field(default=5_000, ge=0, description="Backoff ceiling")
    RETRY_JITTER_MS: int = Field(default=1_000, ge=0, description="Upper bound of added jitter")
    DEFAULT_TIMEOUT_MS: int = Field(default=10_000, gt=0, description="Per-attempt timeout")

    # Cache
    CACHE_ENABLED: bool = Field(default=True, description="Master switch for cache-aside")
    CACHE_TTL: int = Field(default=86_400, gt=0, description="Default TTL in seconds (24 hours)")
    CACHE_KEY_PREFIX: str = Field(default="ai_service", description="Namespace for cache keys")
    CACHE_BACKEND: Literal["memory", "redis"] = Field(default="memory")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=1_000, gt=0, description="In-memory max entries")

    # Routing
    PRIMARY_MODEL: str = Field(default="gpt-4", description="Model used by the PRIMARY target")
    FALLBACK_MODEL: str = Field(default="gpt-3.5-turbo", description="Model used by the FALLBACK target")
    FALLBACK_ENABLED: bool = Field(default=True, description="Allow downgrade on overload")

    # Batch
    BATCH_SIZE: int = Field(default=5, gt=0)
    BATCH_CONCURRENCY: int = Field(default=3, gt=0)
    BATCH_PAUSE_MS: int = Field(default=1_000, ge=0, description="Pause between chunks")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Downstream credentials (used by OpenAIChatCaller only)
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str | None = Field(default=None, description="Override for the OpenAI base URL")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @model_validator(mode="after")
    def validate_backoff_bounds(self):
        """The backoff ceiling can never sit below the first delay."""
        if self.RETRY_MAX_DELAY_MS < self.RETRY_BASE_DELAY_MS:
            raise ValueError("RETRY_MAX_DELAY_MS must be >= RETRY_BASE_DELAY_MS")
        return self

    # Nested configuration views
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_WINDOW_MS=self.RATE_LIMIT_WINDOW_MS,
            RATE_LIMIT_MAX_REQUESTS=self.RATE_LIMIT_MAX_REQUESTS,
            RATE_LIMIT_BACKEND=self.RATE_LIMIT_BACKEND,
        )

    @property
    def circuit_breaker(self) -> CircuitBreakerSettings:
        """Get circuit breaker settings."""
        return CircuitBreakerSettings(
            CB_FAILURE_THRESHOLD=self.CB_FAILURE_THRESHOLD,
            CB_COOLDOWN_MS=self.CB_COOLDOWN_MS,
        )

    @property
    def retry(self) -> RetrySettings:
        """Get retry settings."""
        return RetrySettings(
            RETRY_MAX_ATTEMPTS=self.RETRY_MAX_ATTEMPTS,
            RETRY_BASE_DELAY_MS=self.RETRY_BASE_DELAY_MS,
            RETRY_MAX_DELAY_MS=self.RETRY_MAX_DELAY_MS,
            RETRY_JITTER_MS=self.RETRY_JITTER_MS,
            DEFAULT_TIMEOUT_MS=self.DEFAULT_TIMEOUT_MS,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_ENABLED=self.CACHE_ENABLED,
            CACHE_TTL=self.CACHE_TTL,
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
            CACHE_BACKEND=self.CACHE_BACKEND,
            CACHE_MEMORY_MAX_SIZE=self.CACHE_MEMORY_MAX_SIZE,
        )

    @property
    def routing(self) -> RoutingSettings:
        """Get routing settings."""
        return RoutingSettings(
            PRIMARY_MODEL=self.PRIMARY_MODEL,
            FALLBACK_MODEL=self.FALLBACK_MODEL,
            FALLBACK_ENABLED=self.FALLBACK_ENABLED,
        )

    @property
    def batch(self) -> BatchSettings:
        """Get batch settings."""
        return BatchSettings(
            BATCH_SIZE=self.BATCH_SIZE,
            BATCH_CONCURRENCY=self.BATCH_CONCURRENCY,
            BATCH_PAUSE_MS=self.BATCH_PAUSE_MS,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Process-wide default configuration (lazy)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the process-wide settings instance.

    Gateways created without explicit settings read from here. Runtime state
    (limiter buckets, breaker state) is never stored at module level.
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
