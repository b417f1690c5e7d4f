"""Tests for logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from instructor_rag.config import Environment, Settings
from instructor_rag.logging_config import (
    DevFormatter,
    JSONFormatter,
    get_logger,
    setup_logging,
)


def _record(msg: str = "Test message", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test.module",
        level=logging.INFO,
        pathname="/app/module.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_format_basic_message(self) -> None:
        """Basic log message is formatted as JSON."""
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test.module"
        assert data["message"] == "Test message"
        assert data["file"] == "/app/module.py:42"
        assert "timestamp" in data
        assert "context" not in data

    def test_format_includes_extra_fields(self) -> None:
        """Fields passed via extra= are grouped under context."""
        data = json.loads(JSONFormatter().format(_record(stage="retrieving", top_k=5)))

        assert data["context"] == {"stage": "retrieving", "top_k": 5}

    def test_format_with_exception(self) -> None:
        """Exception info is included in output."""
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        record = _record("Error")
        record.exc_info = exc_info
        data = json.loads(JSONFormatter().format(record))

        assert "ValueError" in data["exception"]


class TestDevFormatter:
    """Tests for development formatter."""

    def test_format_message(self) -> None:
        """Dev formatter produces readable output."""
        output = DevFormatter().format(_record("Warning message"))

        assert "INFO" in output
        assert "test.module" in output
        assert "Warning message" in output

    def test_appends_context(self) -> None:
        """Extra fields are appended as key=value pairs."""
        output = DevFormatter().format(_record("Embedded", dimensions=768))
        assert output.endswith("| dimensions=768")


class TestSetupLogging:
    """Tests for logging setup."""

    def test_returns_root_logger(self) -> None:
        """setup_logging returns root logger."""
        logger = setup_logging(level="INFO", json_output=False)
        assert logger is logging.getLogger()

    def test_uses_json_in_production(self) -> None:
        """JSON output is used in production environment."""
        mock_settings = Settings(environment=Environment.PRODUCTION)

        with patch("instructor_rag.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_uses_dev_formatter_in_development(self) -> None:
        """Dev formatter is used in development environment."""
        mock_settings = Settings(environment=Environment.DEVELOPMENT)

        with patch("instructor_rag.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, DevFormatter)

    def test_level_override(self) -> None:
        """Log level can be overridden."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_quiets_http_client_loggers(self) -> None:
        """Third-party HTTP loggers are raised to WARNING."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_defaults_to_stdout(self) -> None:
        """Records go to stdout unless another stream is given."""
        setup_logging(level="INFO", json_output=False)
        assert logging.getLogger().handlers[0].stream is sys.stdout

    def test_custom_stream(self) -> None:
        """Records can be sent to stderr to keep stdout clean."""
        setup_logging(level="INFO", json_output=False, stream=sys.stderr)
        assert logging.getLogger().handlers[0].stream is sys.stderr


class TestGetLogger:
    """Tests for named logger retrieval."""

    def test_returns_named_logger(self) -> None:
        """get_logger returns a logger with the given name."""
        logger = get_logger("instructor_rag.module")
        assert logger.name == "instructor_rag.module"
