#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging for the gateway with:
- Invocation ID correlation across every attempt of a call
- Stage tagging for the invocation lifecycle
- JSON formatting for log aggregation
- API key redaction (downstream credentials never reach the logs)

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation (ELK, Splunk, etc.)
- Async-safe through context variables
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from inference_gateway.core.config.constants import Stage
from inference_gateway.core.config.settings import get_settings

invocation_id_ctx: ContextVar[str | None] = ContextVar("invocation_id", default=None)

_API_KEY_PATTERNS = (
    re.compile(r"\bsk-[a-zA-Z0-9_-]+\b"),
    re.compile(r"\bAIza[a-zA-Z0-9_-]+\b"),
)


def add_invocation_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add the current invocation ID to the log event.

    The gateway sets it once per `invoke`, so every retry attempt of the same
    call can be correlated.
    """
    invocation_id = invocation_id_ctx.get()
    if invocation_id:
        event_dict["invocation_id"] = invocation_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact API keys from messages and string fields.

    Downstream SDK errors sometimes echo the key back in their message.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            for pattern in _API_KEY_PATTERNS:
                value = pattern.sub("[REDACTED]", value)
            event_dict[key] = value
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_invocation_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value")
    """
    return structlog.get_logger(name)


def set_invocation_id(invocation_id: str) -> None:
    invocation_id_ctx.set(invocation_id)


def get_invocation_id() -> str | None:
    return invocation_id_ctx.get()


def clear_invocation_id() -> None:
    invocation_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger,
    stage: Stage | str,
    message: str,
    level: str = "info",
    **kwargs,
) -> None:
    """
    Log a message with stage information.

    Usage:
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", cache_key="abc123")
    """
    log_func = getattr(logger, level.lower())
    stage_value = stage.value if isinstance(stage, Stage) else stage
    log_func(message, stage=stage_value, **kwargs)
