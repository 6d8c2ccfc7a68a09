"""Tests for the logging configuration."""

import json
import sys
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from loguru import logger

from orderflow.observability.logging import (
    _format_for_json,
    configure_logging,
    configure_logging_from_env,
    execution_logging_context,
    step_logging_context,
)


@pytest.fixture(autouse=True)
def restore_default_sink():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def captured():
    """Collect records emitted while the test runs."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


def _record(message="Test message", extra=None, exception=None):
    level_mock = MagicMock()
    level_mock.name = "INFO"
    return {
        "time": datetime(2025, 1, 15, 10, 30, 45, tzinfo=UTC),
        "level": level_mock,
        "message": message,
        "name": "orderflow.engine",
        "function": "start",
        "line": 42,
        "extra": extra or {},
        "exception": exception,
    }


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_configure_default(self):
        """Test default configuration does not raise."""
        configure_logging()

    def test_configure_json_logs(self, capsys):
        """Test JSON mode writes one JSON object per record."""
        configure_logging(json_logs=True)
        logger.info("Order accepted", order_id="order-1")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        parsed = json.loads(line)
        assert parsed["message"] == "Order accepted"
        assert parsed["context"]["order_id"] == "order-1"

    def test_configure_log_file(self, tmp_path):
        """Test a log file is created, including missing parent dirs."""
        log_file = tmp_path / "logs" / "orders.log"
        configure_logging(log_file=str(log_file))
        logger.info("Written to file")
        logger.remove()

        assert "Written to file" in log_file.read_text()

    def test_console_context_suffix(self, capsys):
        """Test console output ends with the bound context keys."""
        configure_logging()
        with execution_logging_context("exec_1", "order-1"):
            logger.info("Validating")
        logger.info("Idle")

        lines = capsys.readouterr().err.strip().splitlines()
        assert lines[-2].endswith("execution_id=exec_1 order_id=order-1")
        assert "Idle" in lines[-1]
        assert "execution_id" not in lines[-1]

    def test_console_context_hidden(self, capsys):
        """Test show_context=False leaves the message bare."""
        configure_logging(show_context=False)
        with execution_logging_context("exec_1", "order-1"):
            logger.info("Validating")

        assert "execution_id" not in capsys.readouterr().err


class TestConfigureLoggingFromEnv:
    """Tests for environment-based logging configuration."""

    def test_defaults(self):
        """Test configuration with no variables set."""
        configure_logging_from_env()

    def test_json_format(self, monkeypatch, capsys):
        """Test ORDERFLOW_LOG_FORMAT=json selects JSON output."""
        monkeypatch.setenv("ORDERFLOW_LOG_FORMAT", "json")
        monkeypatch.setenv("ORDERFLOW_LOG_LEVEL", "warning")
        configure_logging_from_env()

        logger.info("Dropped")
        logger.warning("Kept")

        lines = capsys.readouterr().err.strip().splitlines()
        messages = [json.loads(line)["message"] for line in lines]
        assert messages == ["Kept"]


class TestJsonFormatting:
    """Tests for JSON log formatting."""

    def test_format_basic_log(self):
        """Test the base fields of a JSON record."""
        parsed = json.loads(_format_for_json(_record()))

        assert parsed["timestamp"].startswith("2025-01-15T10:30:45")
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Test message"
        assert parsed["logger"] == "orderflow.engine"
        assert parsed["line"] == 42
        assert "context" not in parsed

    def test_context_and_extra_are_separated(self):
        """Test known context keys are grouped apart from other extras."""
        record = _record(
            extra={
                "execution_id": "exec_abc",
                "order_id": "order-1",
                "failures": 2,
                "_context": "hidden",
            }
        )

        parsed = json.loads(_format_for_json(record))

        assert parsed["context"] == {"execution_id": "exec_abc", "order_id": "order-1"}
        assert parsed["extra"] == {"failures": 2}

    def test_context_can_be_hidden(self):
        """Test show_context=False drops the context block."""
        record = _record(extra={"execution_id": "exec_abc"})
        assert "context" not in json.loads(_format_for_json(record, show_context=False))

    def test_exception_summary(self):
        """Test exceptions are summarized rather than dumped."""
        exception = MagicMock()
        exception.type = ValueError
        exception.value = ValueError("bad total")
        exception.traceback = None

        parsed = json.loads(_format_for_json(_record(exception=exception)))

        assert parsed["exception"] == {"type": "ValueError", "value": "bad total", "traceback": False}

    def test_unserializable_extra(self):
        """Test non-JSON extras are stringified."""
        record = _record(
            extra={"when": datetime(2025, 1, 1, tzinfo=UTC), "total": Decimal("49.99"), "obj": object()}
        )
        parsed = json.loads(_format_for_json(record))
        assert parsed["extra"]["when"] == "2025-01-01T00:00:00+00:00"
        assert parsed["extra"]["total"] == 49.99
        assert parsed["extra"]["obj"].startswith("<object")


class TestLoggingContextManagers:
    """Tests for the scoped logging context managers."""

    def test_nested_contexts(self, captured):
        """Test step context nests inside execution context and unwinds."""
        with execution_logging_context("exec_1", "order-1"):
            with step_logging_context("validate_order", attempt=2):
                logger.info("Inside step")
            logger.info("Inside execution")
        logger.info("Outside")

        inside_step, inside_execution, outside = captured[-3:]
        assert inside_step["extra"] == {
            "execution_id": "exec_1",
            "order_id": "order-1",
            "step_name": "validate_order",
            "attempt": 2,
        }
        assert inside_execution["extra"] == {"execution_id": "exec_1", "order_id": "order-1"}
        assert outside["extra"] == {}
