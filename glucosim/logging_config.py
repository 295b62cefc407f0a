"""Structured logging configuration.

JSON or plain-text log lines, tagged with a correlation ID so that every
line emitted while one demo regeneration (or one HTTP request) is in
flight can be grouped together.
"""

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Correlation ID for the unit of work currently running (request or regeneration)
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

DEFAULT_SERVICE_NAME = "glucosim-api"

# Loggers that are too chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler")


class _ServiceFormatter(logging.Formatter):
    """Shared state for the service formatters."""

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    @staticmethod
    def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
        return getattr(record, "extra_fields", None) or {}


class JsonFormatter(_ServiceFormatter):
    """One JSON object per record.

    Keys: timestamp, level, service, message, logger, plus correlation_id
    when one is bound, any structured extra fields, exception text, and a
    location block for ERROR and above.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "message": record.getMessage(),
            "logger": record.name,
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id

        payload.update(self.extra_fields(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        if record.levelno >= logging.ERROR:
            payload["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(payload, default=str)


class TextFormatter(_ServiceFormatter):
    """Readable lines for local runs.

    Format: timestamp - service - level - [correlation_id] - message key=value...
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        parts = [
            f"{timestamp} - {self.service_name} - {record.levelname} - "
            f"[{correlation_id_ctx.get() or '-'}] - {record.getMessage()}"
        ]
        parts.extend(f"{key}={value}" for key, value in self.extra_fields(record).items())
        line = " ".join(parts)

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    service_name: str = DEFAULT_SERVICE_NAME,
) -> None:
    """Route all logging to stdout in the chosen format.

    Args:
        log_format: 'json' for structured logging, anything else for text
        log_level: Level name; unknown names fall back to INFO
        service_name: Service name stamped on every line
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter: logging.Formatter = (
        JsonFormatter(service_name=service_name)
        if log_format.lower() == "json"
        else TextFormatter(service_name=service_name)
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def bind_correlation_id(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of a block.

    A fresh UUID is generated when none is given. The previous value is
    restored on exit.
    """
    value = correlation_id or str(uuid.uuid4())
    token = correlation_id_ctx.set(value)
    try:
        yield value
    finally:
        correlation_id_ctx.reset(token)


class StructuredLogger:
    """Logger wrapper that takes structured fields as keyword arguments.

        logger.info("Generated demo entry", sgv=123, direction="Flat")
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(
        self, level: int, msg: str, extra_fields: dict[str, Any], exc_info: bool = False
    ) -> None:
        extra = {"extra_fields": extra_fields} if extra_fields else None
        self._logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.DEBUG, msg, extra_fields)

    def info(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.INFO, msg, extra_fields)

    def warning(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.WARNING, msg, extra_fields)

    def error(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.ERROR, msg, extra_fields)

    def exception(self, msg: str, **extra_fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, extra_fields, exc_info=True)


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for a module (pass ``__name__``)."""
    return StructuredLogger(name)
