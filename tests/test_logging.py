"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from glucosim.logging_config import (
    JsonFormatter,
    StructuredLogger,
    TextFormatter,
    bind_correlation_id,
    correlation_id_ctx,
    get_logger,
    setup_logging,
)


def make_record(level: int = logging.INFO, msg: str = "Generated demo entry", **kwargs):
    record = logging.LogRecord(
        name="glucosim.services.demo_data",
        level=level,
        pathname=kwargs.pop("pathname", ""),
        lineno=kwargs.pop("lineno", 0),
        msg=msg,
        args=(),
        exc_info=kwargs.pop("exc_info", None),
    )
    for key, value in kwargs.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    setup_logging(log_format="json", log_level="INFO")


class TestJsonFormatter:
    """Tests for JSON log lines."""

    def test_basic_fields(self):
        parsed = json.loads(JsonFormatter(service_name="demo-api").format(make_record()))

        assert parsed["level"] == "INFO"
        assert parsed["service"] == "demo-api"
        assert parsed["message"] == "Generated demo entry"
        assert parsed["logger"] == "glucosim.services.demo_data"
        assert "timestamp" in parsed
        assert "correlation_id" not in parsed
        assert "location" not in parsed

    def test_extra_fields_merged(self):
        record = make_record(extra_fields={"sgv": 123, "direction": "Flat"})
        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["sgv"] == 123
        assert parsed["direction"] == "Flat"

    def test_correlation_id_included(self):
        with bind_correlation_id("demo-regen-0123456789ab"):
            parsed = json.loads(JsonFormatter().format(make_record()))

        assert parsed["correlation_id"] == "demo-regen-0123456789ab"

    def test_error_includes_location(self):
        record = make_record(
            logging.ERROR, "Failed to store demo data", pathname="/app/demo.py", lineno=42
        )
        record.funcName = "create_entries"

        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["location"] == {
            "file": "/app/demo.py",
            "line": 42,
            "function": "create_entries",
        }

    def test_exception_text(self):
        try:
            raise ValueError("bad batch")
        except ValueError:
            exc_info = sys.exc_info()

        parsed = json.loads(JsonFormatter().format(make_record(logging.ERROR, exc_info=exc_info)))

        assert "ValueError: bad batch" in parsed["exception"]

    def test_non_json_values_stringified(self, fixed_now):
        parsed = json.loads(
            JsonFormatter().format(make_record(extra_fields={"last_entry_at": fixed_now}))
        )
        assert parsed["last_entry_at"] == "2024-03-13 12:00:00+00:00"


class TestTextFormatter:
    """Tests for human-readable log lines."""

    def test_basic_line(self):
        output = TextFormatter(service_name="demo-api").format(make_record())

        assert " - demo-api - INFO - [-] - Generated demo entry" in output

    def test_correlation_id_and_extra_fields(self):
        record = make_record(extra_fields={"days": 3, "cancelled": False})

        with bind_correlation_id("abc-123"):
            output = TextFormatter().format(record)

        assert "[abc-123]" in output
        assert output.endswith("days=3 cancelled=False")


class TestBindCorrelationId:
    """Tests for scoping a correlation ID to a block."""

    def test_generates_id_when_missing(self):
        with bind_correlation_id() as value:
            assert value
            assert correlation_id_ctx.get() == value

        assert correlation_id_ctx.get() is None

    def test_nested_blocks_restore_outer_value(self):
        with bind_correlation_id("outer"):
            with bind_correlation_id("inner"):
                assert correlation_id_ctx.get() == "inner"
            assert correlation_id_ctx.get() == "outer"

    def test_restored_after_error(self):
        with pytest.raises(RuntimeError), bind_correlation_id("failing"):
            raise RuntimeError("boom")

        assert correlation_id_ctx.get() is None


class TestStructuredLogger:
    """Tests for the keyword-argument logger wrapper."""

    def test_get_logger(self):
        assert isinstance(get_logger("glucosim.test"), StructuredLogger)

    def test_extra_fields_attached_to_record(self, caplog):
        logger = get_logger("glucosim.test")

        with caplog.at_level(logging.INFO):
            logger.info("Completed demo data regeneration", days=3, entries=864)

        record = caplog.records[-1]
        assert record.getMessage() == "Completed demo data regeneration"
        assert record.extra_fields == {"days": 3, "entries": 864}

    def test_no_extra_fields(self, caplog):
        logger = get_logger("glucosim.test")

        with caplog.at_level(logging.WARNING):
            logger.warning("Demo data service marked unhealthy")

        assert not hasattr(caplog.records[-1], "extra_fields")

    def test_debug_filtered_by_level(self, caplog):
        logger = get_logger("glucosim.test")

        with caplog.at_level(logging.INFO):
            logger.debug("Executed find query")

        assert "Executed find query" not in caplog.text

    def test_exception_captures_traceback(self, caplog):
        logger = get_logger("glucosim.test")

        with caplog.at_level(logging.ERROR):
            try:
                raise ValueError("broken")
            except ValueError:
                logger.exception("Request failed", path="/api/v1/entries")

        record = caplog.records[-1]
        assert record.exc_info is not None
        assert record.extra_fields == {"path": "/api/v1/entries"}


class TestSetupLogging:
    """Tests for configuring the root logger."""

    def test_json(self):
        setup_logging(log_format="json", log_level="DEBUG", service_name="custom")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, JsonFormatter)
        assert formatter.service_name == "custom"

    def test_text(self):
        setup_logging(log_format="TEXT")

        assert isinstance(logging.getLogger().handlers[0].formatter, TextFormatter)

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(log_level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_quiets_third_party_loggers(self):
        setup_logging()

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("apscheduler").level == logging.WARNING
