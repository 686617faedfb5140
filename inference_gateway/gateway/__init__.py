"""
Gateway Module

- **gateway.py**: the Gateway façade (invoke, invoke_many, lifecycle, stats)
- **openai_caller.py**: OpenAIChatCaller, a DownstreamCall over AsyncOpenAI
"""

from inference_gateway.gateway.gateway import Gateway
from inference_gateway.gateway.openai_caller import ChatRequest, OpenAIChatCaller

__all__ = ["ChatRequest", "Gateway", "OpenAIChatCaller"]
