"""
Downstream Call Protocol

The remote capability the gateway protects. The gateway knows nothing about
its transport; it only passes the routed target and the caller's payload.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from inference_gateway.core.models import Target


class DownstreamCall(Protocol):
    """
    `async call(target, payload) -> result`

    May raise anything. Errors are translated into the gateway taxonomy by an
    ErrorClassifier at the call boundary; collaborators that already raise
    GatewayError subclasses (e.g. OpenAIChatCaller) pass through unchanged.
    """

    async def __call__(self, target: "Target", payload: Any) -> Any:
        ...
