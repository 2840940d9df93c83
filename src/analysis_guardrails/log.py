"""Logging setup with labeled prefixes (INFO|WARN|ERROR).

Library modules only call logging.getLogger(__name__); handlers are installed here,
once, by the CLI or by the hosting service.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

__all__ = [
    "LOGGER_NAME",
    "LabeledFormatter",
    "setup_logging",
    "reset_logging",
]

LOGGER_NAME = "analysis_guardrails"

_configured: Optional[logging.Logger] = None


class LabeledFormatter(logging.Formatter):
    """Formats records as '<LABEL> [<module>] <message>'."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        source = record.name.rsplit(".", 1)[-1]
        return f"{label} [{source}] {record.getMessage()}"


def setup_logging(level: int = logging.INFO, stream: Optional[TextIO] = None) -> logging.Logger:
    """Configure the package logger. Idempotent: a second call only updates the level."""
    global _configured

    if _configured is not None:
        _configured.setLevel(level)
        for handler in _configured.handlers:
            handler.setLevel(level)
        return _configured

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    # Avoid duplicate output through the root logger.
    logger.propagate = False

    _configured = logger
    return logger


def reset_logging() -> None:
    """Drop the configured handler. Mainly for tests."""
    global _configured
    if _configured is not None:
        for handler in _configured.handlers[:]:
            _configured.removeHandler(handler)
        _configured.propagate = True
    _configured = None
