"""Logging configuration utilities for the API server."""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from apiserver.bootstrap.config import parse_log_level
from apiserver.domain.correlation_id import CorrelationLoggerAdapter

LOGGER_NAME = "apiserver"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(component)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

# Extra record attributes rendered by both formatters, in output order.
EXTRA_KEYS = [
    "event",
    "status",
    "method",
    "duration",
    "ip",
    "path",
    "client",
    "host",
    "port",
    "mode",
    "domains",
    "tls",
    "log_format",
    "log_level",
    "log_destination",
    "metrics",
    "signal",
    "reason",
    "grace_seconds",
    "remaining_workers",
    "error_type",
    "error",
]


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure correlation_id and component fields exist in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        if not hasattr(record, "component"):
            record.component = record.name
        return True


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {key: getattr(record, key) for key in EXTRA_KEYS if hasattr(record, key)}


class JsonFormatter(logging.Formatter):
    """JSON formatter with stable key ordering for structured logging."""

    def __init__(self, datefmt: Optional[str] = None):
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with stable key ordering."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        log_data.update(_extra_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, sort_keys=True, default=str)


class KeyValueFormatter(logging.Formatter):
    """Human readable line followed by key=value pairs."""

    def __init__(self, datefmt: Optional[str] = None):
        super().__init__(LOG_FORMAT, datefmt)

    def format(self, record: logging.LogRecord) -> str:
        record.__dict__.setdefault("correlation_id", "-")
        record.__dict__.setdefault("component", record.name)
        line = super().format(record)
        pairs = " ".join(
            f"{key}={_quote(value)}" for key, value in _extra_fields(record).items()
        )
        if not pairs:
            return line
        head, newline, rest = line.partition("\n")
        return f"{head} {pairs}{newline}{rest}"


def _quote(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        value = ",".join(str(item) for item in value)
    text = str(value)
    if not text or any(char.isspace() or char in '"=' for char in text):
        return json.dumps(text)
    return text


def _build_handler(
    destination: Optional[str], level: int, use_json: bool = False
) -> logging.Handler:
    """Create a stdout or rotating file handler for the configured logger."""
    if destination and destination.lower() != "stdout":
        target_path = Path(destination)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            target_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if use_json:
        handler.setFormatter(JsonFormatter(DATE_FORMAT))
    else:
        handler.setFormatter(KeyValueFormatter(DATE_FORMAT))

    handler.addFilter(CorrelationIdFilter())
    return handler


def configure_logging(
    level: str = "info",
    log_format: str = "text",
    destination: Optional[str] = None,
) -> CorrelationLoggerAdapter:
    """Configure and return the project logger with the requested handler.

    ``level`` must be a recognised level name (an empty string means info);
    ``log_format`` selects JSON output for ``"json"`` and key/value text
    otherwise.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = parse_log_level(level) if level else logging.INFO
    use_json = log_format.lower() == "json"
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = _build_handler(destination, numeric_level, use_json)
    logger.addHandler(handler)

    adapter = CorrelationLoggerAdapter(logging.getLogger(f"{LOGGER_NAME}.server"), {})
    adapter.debug(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "log_destination": destination or "stdout",
            "log_format": "json" if use_json else "text",
            "log_level": logging.getLevelName(numeric_level),
        },
    )
    return adapter
