"""
Structured logging configuration for the QMS inspection core.

Uses Python's built-in logging with a JSONFormatter for production and
a colored text formatter for local work. Library code only ever calls
logging.getLogger(__name__); the application entry point decides the
output format once via configure_logging().

Environments (QMS_ENV):
- production: JSON to stdout (machine-readable)
- anything else: colored text to stderr (human-readable)

Usage:
    from qms.observability.logging_config import configure_logging

    configure_logging()

    logger = logging.getLogger(__name__)
    logger.info("inspection_created", extra={
        "record_id": "ins_3f2a...",
        "batch_id": "BATCH-2026-7QK2",
    })
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Union

# ─── Thread-local Record Context ──────────────────────────────────────

_record_context = threading.local()


def get_current_record_id() -> Optional[str]:
    """The inspection id being worked on, or None outside a record operation."""
    return getattr(_record_context, "record_id", None)


@contextmanager
def record_context(record_id: str) -> Iterator[None]:
    """
    Tag every log line emitted inside the block with `record_id`.

    Nests cleanly: the previous id is restored on exit.
    """
    previous = get_current_record_id()
    _record_context.record_id = record_id
    try:
        yield
    finally:
        _record_context.record_id = previous


class RecordContextFilter(logging.Filter):
    """Injects the active record_id into log records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        record_id = get_current_record_id()
        if record_id and not hasattr(record, "record_id"):
            record.record_id = record_id  # type: ignore[attr-defined]
        return True


# ─── JSON Formatter (Production) ──────────────────────────────────────

_STANDARD_FIELDS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName",
})


class JSONFormatter(logging.Formatter):
    """
    One JSON object per log line.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "qms.inspection.store",
         "message": "inspection_created", "record_id": "ins_...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _STANDARD_FIELDS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                entry[key] = value
            except (TypeError, ValueError):
                entry[key] = str(value)

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


# ─── Dev Formatter ────────────────────────────────────────────────────


class DevFormatter(logging.Formatter):
    """
    Human-readable logs for local use.

    Format: [HH:MM:SS] LEVEL logger: message [key=value key=value]
    """

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    _EXTRA_KEYS = (
        "record_id", "batch_id", "vendor", "predicted",
        "old_status", "new_status", "count",
    )

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, self.RESET)
        timestamp = self.formatTime(record, "%H:%M:%S")

        extras = [
            f"{key}={getattr(record, key)}"
            for key in self._EXTRA_KEYS
            if getattr(record, key, None) is not None
        ]
        extra_str = f" [{' '.join(extras)}]" if extras else ""

        formatted = (
            f"{self.RESET}[{timestamp}] "
            f"{color}{record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}{extra_str}"
        )

        if record.exc_info and record.exc_info[1]:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


# ─── Configuration ────────────────────────────────────────────────────


def configure_logging(
    env: Optional[str] = None,
    level: Union[int, str, None] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        env: Override environment. If None, reads QMS_ENV
             (defaults to "development").
        level: Log level as int or name (default: QMS_LOG_LEVEL or INFO).
    """
    env = (env or os.environ.get("QMS_ENV", "development")).lower().strip()
    if level is None:
        level = os.environ.get("QMS_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if env == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(DevFormatter())

    handler.addFilter(RecordContextFilter())
    root_logger.addHandler(handler)
