"""Logging setup for zonewatch.

Console output is plain text or JSON (``LOG_FORMAT``); the rotating log file
is always plain text. Each record carries the current request ID, and
ingestion code adds ``zone_id`` / ``camera_id`` / ``alert_id`` through
``extra=`` so JSON output can be filtered per zone or camera.
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from zonewatch.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Libraries that log every request or statement at INFO
_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx")

_SECRET_PATTERNS = (
    re.compile(r"(password|secret|token|api[_-]?key|camera[_-]?key|auth)[=:]\s*\S+", re.IGNORECASE),
    re.compile(r"Bearer\s+\S+", re.IGNORECASE),
)
_ABSOLUTE_PATH = re.compile(r"(/[^\s:]+)+")

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


class ContextFilter(logging.Filter):
    """Stamps the active request ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


class CustomJsonFormatter(JsonFormatter):
    """JSON lines with timestamp, level, component and request ID.

    Anything passed through ``extra=`` is emitted as a top-level key.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=datetime.now(UTC).isoformat(),
            level=record.levelname,
            component=record.name,
        )
        request_id = getattr(record, "request_id", None)
        if request_id:
            log_record["request_id"] = request_id


def _console_handler(settings: Settings, level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if settings.log_format == "json":
        handler.setFormatter(CustomJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _file_handler(settings: Settings, level: int) -> logging.Handler:
    log_path = Path(settings.log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=settings.log_file_max_bytes,
        backupCount=settings.log_file_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging() -> None:
    """Replace the root logger's handlers with zonewatch's console and file handlers.

    A log file that cannot be opened leaves console logging in place.
    """
    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    context_filter = ContextFilter()
    console = _console_handler(settings, level)
    console.addFilter(context_filter)
    root.addHandler(console)

    try:
        log_file = _file_handler(settings, level)
    except OSError as e:
        root.warning(f"File logging disabled, cannot open {settings.log_file_path}: {e}")
    else:
        log_file.addFilter(context_filter)
        root.addHandler(log_file)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging configured: level={logging.getLevelName(level)}, format={settings.log_format}")


def sanitize_error(error: Exception, max_length: int = 500) -> str:
    """Render an exception for logs without secrets or full paths.

    Credentials become ``[REDACTED]``, absolute paths are cut to their last
    segment, and the result is truncated to ``max_length`` characters.
    """
    message = str(error)
    for pattern in _SECRET_PATTERNS:
        message = pattern.sub("[REDACTED]", message)
    message = _ABSOLUTE_PATH.sub(lambda m: ".../" + m.group(0).rsplit("/", 1)[-1], message)
    if len(message) > max_length:
        message = message[:max_length] + "...[truncated]"
    return message


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
