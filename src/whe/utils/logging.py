"""Logging for the ``whe`` package.

Handlers live on the package logger only; module loggers obtained through
:func:`get_logger` propagate to it. Fields passed with ``extra=`` (node
counts, table names, stats) are kept by both output formats.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from ..config.settings import settings

PACKAGE_LOGGER = "whe"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RESERVED}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_extras(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class KeyValueFormatter(logging.Formatter):
    """Plain text line followed by ``key=value`` pairs for the extras."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = record_extras(record)
        if extras:
            line += " " + " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return line


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """(Re)install the package handler; defaults come from settings."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if (fmt or settings.log_format) == "json" else KeyValueFormatter())
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))
    package_logger.propagate = False
    return package_logger


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(name)
