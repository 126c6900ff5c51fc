"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from guard.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    SanitizingFilter,
    get_log_context,
    get_logger,
    get_logging_config,
    mask_email,
    mask_phone,
    setup_logging,
)


def make_record(msg="Test message", **extra):
    record = logging.LogRecord(
        name="guard.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "guard.test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_context_fields_promoted(self):
        record = make_record(
            "Rate limit exceeded", client_ip="203.0.113.7", policy="strict", request_id="req-1"
        )
        data = json.loads(JSONFormatter().format(record))

        assert data["client_ip"] == "203.0.113.7"
        assert data["policy"] == "strict"
        assert data["request_id"] == "req-1"

    def test_other_extras_nested(self):
        data = json.loads(JSONFormatter().format(make_record(identifier="report:1.2.3.4")))
        assert data["extra"] == {"identifier": "report:1.2.3.4"}

    def test_none_context_fields_omitted(self):
        record = make_record()
        ContextFilter().filter(record)
        data = json.loads(JSONFormatter().format(record))
        assert "client_ip" not in data
        assert "extra" not in data

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert any("ValueError: boom" in line for line in data["exception"])


class TestSanitizingFilter:

    def test_masks_emails(self):
        record = make_record(reporter_email="jane.doe@example.com", email="jo@example.com")
        SanitizingFilter().filter(record)
        assert record.reporter_email == "j***e@example.com"
        assert record.email == "***@example.com"

    def test_masks_phone(self):
        record = make_record(phone="02071234678")
        SanitizingFilter().filter(record)
        assert record.phone == "020****678"

    def test_drops_secrets(self):
        record = make_record(admin_token="s3cret", api_key="k", policy="strict")
        SanitizingFilter().filter(record)
        assert not hasattr(record, "admin_token")
        assert not hasattr(record, "api_key")
        assert record.policy == "strict"

    @pytest.mark.parametrize("value", ["", "not-an-email"])
    def test_mask_email_passthrough(self, value):
        assert mask_email(value) == value

    def test_mask_phone_short_number_untouched(self):
        assert mask_phone("12345") == "12345"


class TestLogContext:

    def test_drops_none_values(self):
        context = get_log_context(client_ip="203.0.113.7", user_id=None, reason="timeout")
        assert context == {"client_ip": "203.0.113.7", "reason": "timeout"}


class TestLoggingConfig:

    def test_json_format_selected(self):
        with patch("guard.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "debug"
            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["guard"]["level"] == "DEBUG"
        assert config["handlers"]["console"]["filters"] == ["context", "sanitize"]

    def test_text_format_default(self):
        with patch("guard.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"
            config = get_logging_config()
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_setup_logging_configures_guard_logger(self):
        setup_logging()
        logger = get_logger("guard.app.services")
        assert logger.getEffectiveLevel() <= logging.ERROR
        assert logging.getLogger("guard").propagate is False
