"""Logging setup with JSON and colored console output."""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from typing import Optional


class JSONFormatter(logging.Formatter):
    """Formats logs as JSON for easier parsing."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, ensure_ascii=False)


class StandardFormatter(logging.Formatter):
    """Standard text formatter with color support."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        if sys.stdout.isatty():
            color = self.COLORS.get(record.levelname, "")
            reset = self.RESET
        else:
            color = reset = ""

        timestamp = self.formatTime(record)
        level = f"{color}{record.levelname:8s}{reset}"
        result = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "standard",
    log_file: Optional[str] = None,
    component_levels: Optional[dict] = None,
) -> None:
    """Set up logging for the cache engine.

    Args:
        log_level: Root logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format style ("standard" or "json")
        log_file: Optional path to a rotating log file
        component_levels: Dict mapping logger names to levels, e.g.
                         {"SAPICACHE.Consolidation": "DEBUG"}
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    formatter: logging.Formatter
    if log_format.lower() == "json":
        formatter = JSONFormatter()
    else:
        formatter = StandardFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10_000_000,
                backupCount=5,
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Failed to set up file logging: {e}")

    if component_levels:
        for component, component_level in component_levels.items():
            logging.getLogger(component).setLevel(
                getattr(logging, component_level.upper(), logging.INFO)
            )

    logging.getLogger("SAPICACHE").info(f"Logging initialized: level={log_level}, format={log_format}")


__all__ = ["setup_logging", "JSONFormatter", "StandardFormatter"]
