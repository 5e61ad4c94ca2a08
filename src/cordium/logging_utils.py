from __future__ import annotations

import logging
import sys
from datetime import datetime

LOG_LEVEL_OPTIONS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_LEVEL = "INFO"


class _CordiumLogFormatter(logging.Formatter):
    # Update checks and downloads log from worker threads.
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created)
        when = f"{stamp:%H:%M:%S}.{int(record.msecs):03d} {stamp.month}/{stamp.day}/{stamp.year}"
        level = (record.levelname or "INFO").capitalize()
        origin = record.name or "root"
        if record.threadName and record.threadName != "MainThread":
            origin = f"{origin}@{record.threadName}"
        text = f"[{level}] [{when}] [{origin}] {record.getMessage()}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def normalize_log_level_name(value: object, default: str = DEFAULT_LOG_LEVEL) -> str:
    text = str(value or "").strip().upper()
    return text if text in LOG_LEVEL_OPTIONS else str(default).strip().upper()


def get_level_number(value: object, default: str = DEFAULT_LOG_LEVEL) -> int:
    return logging.getLevelName(normalize_log_level_name(value, default))


def configure_app_logging(level: object = DEFAULT_LOG_LEVEL) -> str:
    """Install the console handler on the root logger (once) and apply ``level``.

    Safe to call again to change the level. Returns the normalized level name.
    """
    level_name = normalize_log_level_name(level)
    root_logger = logging.getLogger()
    if not any(getattr(h, "_cordium_console_handler", False) for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.__stdout__)
        handler._cordium_console_handler = True  # type: ignore[attr-defined]
        handler.setFormatter(_CordiumLogFormatter())
        root_logger.addHandler(handler)
    root_logger.setLevel(get_level_number(level_name))
    logging.captureWarnings(True)
    return level_name


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
