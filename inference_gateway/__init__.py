"""
Inference Gateway

Resilience layer for calls into a slow, rate-limited LLM API: per-caller rate
limiting, circuit breaking, bounded retries with backoff, fallback routing
and cache-aside memoization.
"""

from inference_gateway.core.config import Settings, get_settings
from inference_gateway.core.exceptions import GatewayError
from inference_gateway.core.models import Operation, RetryPolicy, Target
from inference_gateway.gateway import ChatRequest, Gateway, OpenAIChatCaller

__version__ = "1.0.0"

__all__ = [
    "ChatRequest",
    "Gateway",
    "GatewayError",
    "OpenAIChatCaller",
    "Operation",
    "RetryPolicy",
    "Settings",
    "Target",
    "get_settings",
]
