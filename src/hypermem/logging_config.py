"""
Logging setup for hypermem.

Library modules only create loggers with ``logging.getLogger(__name__)``;
applications call :func:`setup_logging` once to attach handlers.
"""

import json
import logging
import logging.handlers
import sys
from typing import Dict, Optional


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict)


class StandardFormatter(logging.Formatter):
    """Plain text formatter: ``<time> <LEVEL> [logger] message``."""

    def format(self, record: logging.LogRecord) -> str:
        result = f"{self.formatTime(record)} {record.levelname:8s} [{record.name}] {record.getMessage()}"
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "standard",
    log_file: Optional[str] = None,
    component_levels: Optional[Dict[str, str]] = None,
) -> None:
    """
    Configure the ``hypermem`` logger hierarchy.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "standard" or "json"
        log_file: Optional path for a rotating log file
        component_levels: Per-logger overrides, e.g. {"hypermem.storage": "DEBUG"}
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root = logging.getLogger("hypermem")
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(level)

    formatter = JSONFormatter() if log_format.lower() == "json" else StandardFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10_000_000,
            backupCount=5,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if component_levels:
        for component, component_level in component_levels.items():
            logging.getLogger(component).setLevel(
                getattr(logging, component_level.upper(), logging.INFO)
            )

    root.info("Logging initialized: level=%s, format=%s", log_level, log_format)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (typically ``__name__``)."""
    return logging.getLogger(name)


__all__ = ["setup_logging", "get_logger", "JSONFormatter", "StandardFormatter"]
