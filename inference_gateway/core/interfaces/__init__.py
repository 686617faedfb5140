"""
Core Interfaces Module

Protocols for the gateway's external collaborators, enabling dependency
injection and easy mocking in tests.

Components:
-----------
- **cache.py**: CacheBackend protocol for cache stores
- **metrics.py**: MetricsSink protocol for counters and timings
- **downstream.py**: DownstreamCall protocol for the remote capability
"""

from inference_gateway.core.interfaces.cache import CacheBackend, ManagedCacheBackend
from inference_gateway.core.interfaces.downstream import DownstreamCall
from inference_gateway.core.interfaces.metrics import MetricsSink, Tags

__all__ = [
    "CacheBackend",
    "DownstreamCall",
    "ManagedCacheBackend",
    "MetricsSink",
    "Tags",
]
