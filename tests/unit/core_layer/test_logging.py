"""
Unit Tests for Logging Module

Tests logger creation, invocation-id correlation, secret redaction and the
stage helper.
"""

from unittest.mock import MagicMock

import pytest

from inference_gateway.core.config.constants import Stage
from inference_gateway.core.logging.logger import (
    add_invocation_id,
    add_log_level_name,
    clear_invocation_id,
    get_invocation_id,
    get_logger,
    log_stage,
    redact_secrets,
    set_invocation_id,
    setup_logging,
)


@pytest.mark.unit
class TestLoggerCreation:
    def test_get_logger_returns_logger_instance(self):
        logger = get_logger(__name__)
        assert hasattr(logger, "info")

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_setup_logging_accepts_both_formats(self, log_format):
        setup_logging(log_level="INFO", log_format=log_format)
        get_logger("setup-test").info("configured")


@pytest.mark.unit
class TestInvocationContext:
    def teardown_method(self):
        clear_invocation_id()

    def test_set_and_clear(self):
        set_invocation_id("inv-1")
        assert get_invocation_id() == "inv-1"

        clear_invocation_id()
        assert get_invocation_id() is None

    def test_processor_injects_invocation_id(self):
        set_invocation_id("inv-42")
        event = add_invocation_id(None, "info", {"event": "hello"})
        assert event["invocation_id"] == "inv-42"

    def test_processor_skips_when_unset(self):
        event = add_invocation_id(None, "info", {"event": "hello"})
        assert "invocation_id" not in event


@pytest.mark.unit
class TestProcessors:
    def test_redacts_api_keys(self):
        event = redact_secrets(
            None,
            "error",
            {"event": "Incorrect API key provided: sk-abc123XYZ", "error": "key AIzaSyD-xyz rejected", "count": 3},
        )
        assert "sk-abc123XYZ" not in event["event"]
        assert "[REDACTED]" in event["event"]
        assert "AIzaSyD-xyz" not in event["error"]
        assert event["count"] == 3

    def test_level_uppercased(self):
        assert add_log_level_name(None, "info", {"level": "info"})["level"] == "INFO"


@pytest.mark.unit
class TestLogStage:
    def test_log_stage_passes_stage_value(self):
        logger = MagicMock()
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", key="abc")
        logger.info.assert_called_once_with("Cache hit", stage="1.0_CACHE_LOOKUP", key="abc")

    def test_log_stage_level(self):
        logger = MagicMock()
        log_stage(logger, "CUSTOM", "Oops", level="warning")
        logger.warning.assert_called_once_with("Oops", stage="CUSTOM")
