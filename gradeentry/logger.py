"""Logging setup for the grade entry workbench.

Every component logs through a child of the "gradeentry" logger named after
its context (e.g. "gradeentry.WorkbookIngestor"), and lines are rendered as:

    [2024-05-01T10:00:00.000000+00:00] [INFO] [WorkbookIngestor] message
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

__all__ = [
    "setup_logging",
    "get_logger",
    "reset_logging",
    "ContextFormatter",
]

ROOT_LOGGER_NAME = "gradeentry"

_configured: logging.Logger | None = None


class ContextFormatter(logging.Formatter):
    """Formatter producing `[timestamp] [LEVEL] [context] message`.

    The context is the last dotted part of the logger name, so module loggers
    obtained through get_logger() show the component they belong to.
    """

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARNING",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        context = record.name.rsplit(".", 1)[-1]
        line = f"[{ts}] [{level_label}] [{context}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure the package logger once and return it.

    Idempotent: a second call only updates the level.
    """
    global _configured

    if _configured is not None:
        _configured.setLevel(level)
        return _configured

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    _configured = logger
    return logger


def get_logger(context: str) -> logging.Logger:
    """Child logger for a component; handlers come from setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{context}")


def reset_logging() -> None:
    """Drop handlers and the configured flag. Mainly for tests."""
    global _configured
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    _configured = None
