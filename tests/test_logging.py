"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from riftcall.core.config import Settings
from riftcall.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
    setup_logging,
)


def _record(msg="Test message", level=logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        record = _record("Call succeeded")
        record.region = "euw"
        record.resource = "v4:summoner"
        record.status_code = 200
        record.duration_ms = 150.5

        data = json.loads(JSONFormatter().format(record))

        assert data["region"] == "euw"
        assert data["resource"] == "v4:summoner"
        assert data["status_code"] == 200
        assert data["duration_ms"] == 150.5
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        record = _record("Custom event")
        record.source_kind = "fixture"

        data = json.loads(JSONFormatter().format(record))
        assert data["extra"]["source_kind"] == "fixture"

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text

    def test_none_context_values_are_omitted(self):
        record = _record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))
        assert "region" not in data
        assert "extra" not in data


class TestContextFilter:

    def test_adds_default_fields(self):
        record = _record()
        assert ContextFilter().filter(record) is True
        for field in ContextFilter.CONTEXT_DEFAULTS:
            assert hasattr(record, field)

    def test_preserves_existing_values(self):
        record = _record()
        record.region = "kr"
        ContextFilter().filter(record)
        assert record.region == "kr"


class TestGetLoggingConfig:

    def test_default_text_format(self):
        config = get_logging_config(Settings(_env_file=None))

        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"
        assert config["handlers"]["console"]["level"] == "INFO"

    def test_structured_format(self):
        config = get_logging_config(
            Settings(_env_file=None, log_format="structured", log_level="warning")
        )

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "WARNING"

    def test_json_format(self):
        config = get_logging_config(Settings(_env_file=None, log_format="json"))

        assert config["formatters"]["json"]["()"] == "riftcall.core.logging.JSONFormatter"
        assert config["handlers"]["console"]["formatter"] == "json"

    def test_debug_forces_debug_level(self):
        config = get_logging_config(Settings(_env_file=None, debug=True, log_level="ERROR"))
        assert config["loggers"]["riftcall"]["level"] == "DEBUG"


class TestSetupLogging:

    def test_configures_package_logger(self):
        logger = logging.getLogger("riftcall")
        try:
            setup_logging(Settings(_env_file=None, log_level="WARNING"))

            assert logger.level == logging.WARNING
            assert logger.propagate is False
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            logger.handlers.clear()
            logger.propagate = True
            logger.setLevel(logging.NOTSET)


class TestHelpers:

    def test_get_logger(self):
        assert get_logger().name == "riftcall"
        assert get_logger("riftcall.services").name == "riftcall.services"

    def test_get_log_context_drops_none(self):
        context = get_log_context(region="euw", status_code=None, group="batch")
        assert context == {"region": "euw", "group": "batch"}

    @pytest.mark.parametrize("field", ["region", "resource", "endpoint", "method"])
    def test_get_log_context_named_fields(self, field):
        assert get_log_context(**{field: "x"}) == {field: "x"}
