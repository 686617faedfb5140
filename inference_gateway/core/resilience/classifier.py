"""
Error Classification

The single seam where raw downstream failures are translated into the
gateway taxonomy. Every attempt outcome is classified exactly once, here;
nothing downstream of this point inspects error shapes.

Mapping:
    already a GatewayError             -> unchanged
    TimeoutError / asyncio.TimeoutError -> AttemptTimeoutError
    HTTP 429 / 529, quota & rate codes -> DownstreamOverloaded
    HTTP 400/401/403/404/413/422       -> ValidationError
    ValueError / TypeError (no status) -> ValidationError
    anything else (5xx, I/O, unknown)  -> TransientError

Status and code are read structurally (`status_code`, `status`,
`response.status_code`, `code`, `body["error"]["code"]`), which covers the
openai and httpx exception types without importing them.
"""

import asyncio
from typing import Any

from inference_gateway.core.exceptions import (
    AttemptTimeoutError,
    DownstreamOverloaded,
    GatewayError,
    TransientError,
    ValidationError,
)


class ErrorClassifier:
    """
    Translate arbitrary exceptions into GatewayError subclasses.

    Subclass and override `classify` to teach the gateway about a
    collaborator with unusual error shapes.
    """

    OVERLOAD_STATUSES = frozenset({429, 529})
    OVERLOAD_CODES = frozenset(
        {"insufficient_quota", "rate_limit_exceeded", "rate_limited", "overloaded", "overloaded_error"}
    )
    VALIDATION_STATUSES = frozenset({400, 401, 403, 404, 413, 422})

    def classify(self, exc: BaseException, **context) -> GatewayError:
        """
        Return the classified form of `exc`.

        The caller is expected to `raise classified from exc` when the result
        is a new object, so the original stays on the cause chain.
        """
        if isinstance(exc, GatewayError):
            return exc

        if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
            return AttemptTimeoutError.from_exception(exc, "Downstream call timed out", **context)

        status = self._status_of(exc)
        code = self._code_of(exc)
        if status is not None:
            context["status"] = status
        if code is not None:
            context["code"] = code

        if status in self.OVERLOAD_STATUSES or code in self.OVERLOAD_CODES:
            return DownstreamOverloaded.from_exception(exc, **context)

        if status in self.VALIDATION_STATUSES:
            return ValidationError.from_exception(exc, **context)

        if status is None and isinstance(exc, (ValueError, TypeError)):
            return ValidationError.from_exception(exc, **context)

        return TransientError.from_exception(exc, **context)

    @staticmethod
    def _status_of(exc: BaseException) -> int | None:
        for candidate in (
            getattr(exc, "status_code", None),
            getattr(exc, "status", None),
            getattr(getattr(exc, "response", None), "status_code", None),
            getattr(getattr(exc, "response", None), "status", None),
        ):
            if isinstance(candidate, int) and not isinstance(candidate, bool):
                return candidate
        return None

    @staticmethod
    def _code_of(exc: BaseException) -> str | None:
        code: Any = getattr(exc, "code", None)
        if isinstance(code, str):
            return code

        body = getattr(exc, "body", None)
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and isinstance(error.get("code"), str):
                return error["code"]
            if isinstance(body.get("code"), str):
                return body["code"]
        return None
