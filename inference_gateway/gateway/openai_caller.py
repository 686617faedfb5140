"""
OpenAI Chat Completion Caller

Ready-made downstream collaborator for the gateway, using the official
AsyncOpenAI client. It performs exactly one chat completion per call and
translates OpenAI SDK exceptions into the gateway taxonomy at this seam.

The SDK's own retries are disabled (max_retries=0): the gateway's
RetryExecutor owns retry policy.
"""

from typing import Any

import orjson
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    PermissionDeniedError,
    RateLimitError,
    UnprocessableEntityError,
)
from pydantic import BaseModel, Field

from inference_gateway.core.config.constants import Stage
from inference_gateway.core.config.settings import Settings
from inference_gateway.core.exceptions import (
    AttemptTimeoutError,
    ConfigurationError,
    DownstreamOverloaded,
    TransientError,
    ValidationError,
)
from inference_gateway.core.logging import get_logger, log_stage
from inference_gateway.core.models import Target

logger = get_logger(__name__)


class ChatRequest(BaseModel):
    """
    Payload understood by OpenAIChatCaller.

    Sampling defaults suit short testimonial and skill-summary replies.
    """

    messages: list[dict[str, str]] = Field(..., min_length=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=150, gt=0)
    presence_penalty: float = 0.6
    frequency_penalty: float = 0.5
    parse_json: bool = Field(default=False, description="Decode the reply as JSON")


class OpenAIChatCaller:
    """
    `async call(target, payload) -> str | Any`

    `target.model` selects the model; payload is a ChatRequest or a dict
    that validates as one.
    """

    def __init__(self, client: AsyncOpenAI):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIChatCaller":
        if not settings.OPENAI_API_KEY:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.DEFAULT_TIMEOUT_MS / 1000,
            max_retries=0,
        )
        logger.info("OpenAI caller initialized", base_url=settings.OPENAI_BASE_URL)
        return cls(client)

    async def __call__(self, target: Target, payload: Any) -> Any:
        request = payload if isinstance(payload, ChatRequest) else ChatRequest.model_validate(payload)
        details = {"target": target.name, "model": target.model}

        try:
            response = await self.client.chat.completions.create(
                model=target.model,
                messages=request.messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                presence_penalty=request.presence_penalty,
                frequency_penalty=request.frequency_penalty,
            )
        except RateLimitError as e:
            log_stage(logger, Stage.DOWNSTREAM_CALL, "OpenAI rate limit exceeded", level="warning", **details)
            raise DownstreamOverloaded(
                "OpenAI rate limit exceeded", details={**details, "code": e.code}
            ) from e
        except APITimeoutError as e:
            raise AttemptTimeoutError("OpenAI request timed out", details=details) from e
        except APIConnectionError as e:
            log_stage(logger, Stage.DOWNSTREAM_CALL, "OpenAI connection failed", level="error", **details)
            raise TransientError("Could not connect to OpenAI", details=details) from e
        except (BadRequestError, UnprocessableEntityError, AuthenticationError, PermissionDeniedError) as e:
            raise ValidationError(
                f"OpenAI rejected the request: {e.message}",
                details={**details, "status": e.status_code, "code": e.code},
            ) from e
        except APIStatusError as e:
            raise TransientError(
                f"OpenAI API returned an error: {e.message}",
                details={**details, "status": e.status_code, "code": e.code},
            ) from e
        except APIError as e:
            raise TransientError(f"OpenAI API error: {e.message}", details=details) from e

        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not request.parse_json:
            return content

        try:
            return orjson.loads(content)
        except orjson.JSONDecodeError as e:
            raise TransientError("OpenAI reply was not valid JSON", details=details) from e
