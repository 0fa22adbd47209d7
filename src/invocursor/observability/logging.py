"""Centralized logging setup for Invocursor."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO


_RESERVED = set(
    logging.LogRecord("name", logging.INFO, "path", 1, "msg", None, None).__dict__
) | {"message", "asctime", "stack_info"}


class JsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line.

    Custom attributes passed through ``extra=`` (for example
    ``failure_kind`` or ``config``) become top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "component": record.name,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED:
                continue
            if key == "extra_fields" and isinstance(value, dict):
                entry.update(value)
            else:
                entry[key] = value

        return json.dumps(entry, default=str)


def setup_logging(
    level: Optional[str] = None, stream: Optional[TextIO] = None
) -> None:
    """Initializes the root logger with a single JSON handler.

    Args:
        level: Optional log level override. Defaults to LOG_LEVEL env var or INFO.
        stream: Output stream. Defaults to stdout.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    root = logging.getLogger()
    root.setLevel(log_level)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())

    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Retrieves a logger with the given name.

    Args:
        name: The name of the logger (typically __name__).

    Returns:
        A logging.Logger instance.
    """
    return logging.getLogger(name)
