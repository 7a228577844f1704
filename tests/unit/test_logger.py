"""Unit tests for logging infrastructure."""

import json
import logging
import sys

import pytest

from src.utils.logger import JSONFormatter, RichTextFormatter, get_logger, logger, request_logger


def make_record(msg="Test message", level=logging.INFO, name="test_logger", exc_info=None):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture
def fresh_logger_name(monkeypatch):
    """Yield an unconfigured logger name with LOG_LEVEL/LOG_TYPE unset; clean up afterwards."""
    name = "test_fresh_logger"
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_TYPE", raising=False)
    fresh = logging.getLogger(name)
    fresh.handlers.clear()
    fresh.setLevel(logging.NOTSET)
    yield name
    fresh.handlers.clear()
    fresh.setLevel(logging.NOTSET)


class TestJSONFormatter:
    """Test JSONFormatter produces valid JSON output."""

    def test_json_formatter_outputs_valid_json(self):
        """Test that JSONFormatter produces valid JSON."""
        output = JSONFormatter().format(make_record())
        parsed = json.loads(output)

        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test_logger"
        assert parsed["message"] == "Test message"
        assert "timestamp" in parsed

    def test_json_formatter_includes_exception_traceback(self):
        """Test that JSONFormatter includes exception traceback when present."""
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", logging.ERROR, exc_info=sys.exc_info())

        parsed = json.loads(JSONFormatter().format(record))

        assert "exception" in parsed
        assert "ValueError" in parsed["exception"]

    def test_json_formatter_includes_correlation_fields(self):
        """Test that JSONFormatter includes request/session/user/agent ids if present."""
        record = make_record()
        record.request_id = "req-123"
        record.session_id = "sess-456"
        record.user_id = "user-1"
        record.agent_id = "sous-chef"

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["request_id"] == "req-123"
        assert parsed["session_id"] == "sess-456"
        assert parsed["user_id"] == "user-1"
        assert parsed["agent_id"] == "sous-chef"

    def test_json_formatter_omits_missing_correlation_fields(self):
        parsed = json.loads(JSONFormatter().format(make_record()))

        assert "request_id" not in parsed
        assert "user_id" not in parsed


class TestRichTextFormatter:
    """Test RichTextFormatter produces colored text output."""

    @pytest.mark.parametrize(
        "level,icon",
        [(logging.DEBUG, "🔍"), (logging.INFO, "ℹ️"), (logging.WARNING, "⚠️"), (logging.ERROR, "❌")],
    )
    def test_rich_text_formatter_includes_emoji_icon(self, level, icon):
        """Test that RichTextFormatter includes emoji icons for each level."""
        output = RichTextFormatter().format(make_record(level=level))
        assert icon in output

    def test_rich_text_formatter_includes_level_logger_and_message(self):
        output = RichTextFormatter().format(make_record("Custom message", name="my_logger"))

        assert "INFO" in output
        assert "my_logger" in output
        assert "Custom message" in output

    def test_rich_text_formatter_appends_request_id(self):
        record = make_record()
        record.request_id = "req-789"

        output = RichTextFormatter().format(record)

        assert "[req-789]" in output

    def test_rich_text_formatter_includes_exception_traceback(self):
        """Test that RichTextFormatter includes exception traceback."""
        try:
            raise RuntimeError("Test error")
        except RuntimeError:
            record = make_record("Error occurred", logging.ERROR, exc_info=sys.exc_info())

        output = RichTextFormatter().format(record)

        assert "RuntimeError" in output
        assert "Test error" in output


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_returns_same_configured_instance(self):
        first = get_logger("test_module_2")
        second = get_logger("test_module_2")

        assert first is second
        assert len(second.handlers) == 1

    def test_get_logger_respects_log_level_env(self, monkeypatch, fresh_logger_name):
        """Test that get_logger respects LOG_LEVEL environment variable."""
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert get_logger(fresh_logger_name).level == logging.DEBUG

    def test_defaults_without_environment(self, fresh_logger_name):
        test_logger = get_logger(fresh_logger_name)

        assert test_logger.level == logging.INFO
        assert test_logger.handlers[0].level == logging.INFO
        assert isinstance(test_logger.handlers[0].formatter, RichTextFormatter)

    def test_debug_level_does_not_leak_into_next_logger(self, monkeypatch, fresh_logger_name):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert get_logger(fresh_logger_name).level == logging.DEBUG

        logging.getLogger(fresh_logger_name).handlers.clear()
        logging.getLogger(fresh_logger_name).setLevel(logging.NOTSET)
        monkeypatch.delenv("LOG_LEVEL")

        assert get_logger(fresh_logger_name).level == logging.INFO

    def test_invalid_log_level_defaults_to_info(self, monkeypatch, fresh_logger_name):
        monkeypatch.setenv("LOG_LEVEL", "INVALID")
        assert get_logger(fresh_logger_name).level == logging.INFO

    def test_get_logger_uses_text_formatter_by_default(self, monkeypatch, fresh_logger_name):
        monkeypatch.delenv("LOG_TYPE", raising=False)
        test_logger = get_logger(fresh_logger_name)
        assert isinstance(test_logger.handlers[0].formatter, RichTextFormatter)

    def test_get_logger_respects_log_type_json(self, monkeypatch, fresh_logger_name):
        """Test that get_logger uses JSONFormatter with LOG_TYPE=json."""
        monkeypatch.setenv("LOG_TYPE", "json")
        test_logger = get_logger(fresh_logger_name)
        assert isinstance(test_logger.handlers[0].formatter, JSONFormatter)

    def test_get_logger_does_not_propagate(self, fresh_logger_name):
        assert get_logger(fresh_logger_name).propagate is False


class TestRequestLogger:
    def test_request_logger_binds_correlation_fields(self):
        adapter = request_logger("req-1", session_id="sess-1", user_id="user-1", agent_id="sous-chef")

        assert isinstance(adapter, logging.LoggerAdapter)
        assert adapter.logger is logger
        assert adapter.extra == {
            "request_id": "req-1",
            "session_id": "sess-1",
            "user_id": "user-1",
            "agent_id": "sous-chef",
        }

    def test_request_logger_records_carry_fields(self):
        base = logging.getLogger("test_request_logger")
        base.handlers.clear()
        base.propagate = False
        records = []

        class Collector(logging.Handler):
            def emit(self, record):
                records.append(record)

        base.addHandler(Collector())
        base.setLevel(logging.INFO)

        request_logger("req-9", user_id="user-9", base=base).info("hello")

        assert records[0].request_id == "req-9"
        assert records[0].user_id == "user-9"
        base.handlers.clear()


class TestModuleLevelLogger:
    """Test module-level logger instance."""

    def test_logger_is_importable(self):
        assert isinstance(logger, logging.Logger)
        assert logger.name == "sous_chef"

    def test_logger_has_handlers(self):
        assert len(logger.handlers) > 0
