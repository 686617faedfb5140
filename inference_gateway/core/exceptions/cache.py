"""
Cache-Related Exceptions

Raised by cache backends. CacheAside catches these (and any other backend
failure) so they never reach gateway callers.
"""

from inference_gateway.core.exceptions.base import GatewayError


class CacheError(GatewayError):
    """Base exception for cache-related errors."""

    outcome = "cache_error"


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the cache backend (Redis).

    Common causes:
    - Redis server is down
    - Incorrect host/port configuration
    - Authentication failure
    """


class CacheSerializationError(CacheError):
    """Raised when a value cannot be encoded for or decoded from the backend."""
