"""Logging for the recommendation service.

Configured via environment variables:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text, json (default: text)

Request-scoped fields (request_id, user_id, provider) travel on the record
through ``extra=`` and are emitted by both formats.
"""

import json
import logging
import os
import sys
from typing import Any, Dict

CONTEXT_FIELDS = ("request_id", "user_id", "provider")

# ANSI colors per level; unlisted levels print uncolored
LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
}
RESET = "\033[0m"

# Client and driver loggers that only matter when debugging those libraries
QUIETED_LOGGERS = ("aiohttp.access", "google.genai", "openai", "anthropic", "httpx", "sqlalchemy.engine")


def request_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Context extras present on the record, in CONTEXT_FIELDS order."""
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, context extras at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **request_context(record),
        }
        # app.py and query.py log unhandled failures with exc_info=True
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RichTextFormatter(logging.Formatter):
    """Colored single line per record with a ``[key=value ...]`` context suffix."""

    def format(self, record: logging.LogRecord) -> str:
        context = " ".join(f"{key}={value}" for key, value in request_context(record).items())
        line = (
            f"{self.formatTime(record, '%Y-%m-%d %H:%M:%S')} {record.levelname:<8} {record.name:<20} "
            f"{record.getMessage()}{f' [{context}]' if context else ''}"
        )
        color = LEVEL_COLORS.get(record.levelname)
        if color:
            line = f"{color}{line}{RESET}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Return the named logger, attaching a stdout handler on first use.

    Args:
        name: Logger name.

    Returns:
        Logger with level from LOG_LEVEL and formatter from LOG_TYPE.
    """
    instance = logging.getLogger(name)
    if instance.handlers:
        return instance

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    instance.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if os.getenv("LOG_TYPE", "text").lower() == "json" else RichTextFormatter())
    instance.addHandler(handler)
    return instance


logger = get_logger("sous")

for _name in QUIETED_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)
