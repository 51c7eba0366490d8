"""Lightweight logging helper for console-tagged messages.

Provides level+tag output for every engine component, plus a short ring buffer
of recent messages for on-screen debug panels.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Any

RECENT_MESSAGE_LIMIT = 10

_logger = logging.getLogger("harmonicxplorer")


class _RecentMessagesHandler(logging.Handler):
    """Keeps the newest formatted messages, newest first."""

    def __init__(self, limit: int = RECENT_MESSAGE_LIMIT):
        super().__init__()
        self.messages: deque[str] = deque(maxlen=limit)

    def emit(self, record: logging.LogRecord) -> None:
        tag = getattr(record, "tag", "App")
        self.messages.appendleft(f"[{tag}] {record.getMessage()}")


_recent_handler = _RecentMessagesHandler()

if not _logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("[%(levelname)s][%(tag)s] %(message)s")
    handler.setFormatter(formatter)
    _logger.addHandler(handler)
    _logger.addHandler(_recent_handler)
    _logger.setLevel(logging.INFO)


class _TagAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: dict[str, Any]):
        tag = kwargs.pop("tag", "App")
        kwargs.setdefault("extra", {})["tag"] = tag
        return msg, kwargs


_logger_adapter = _TagAdapter(_logger, {})


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    """Log a message with level+tag, appending key=value fields when provided."""
    if fields:
        extras = " ".join(f"{k}={v}" for k, v in fields.items())
        message = f"{message} | {extras}"
    level_name = level.upper()
    if level_name == "WARN":
        level_name = "WARNING"
    level_val = getattr(logging, level_name, logging.INFO)
    _logger_adapter.log(level_val, message, tag=tag)


def set_log_level(level: str) -> None:
    """Set global log level (DEBUG/INFO/WARNING/ERROR)."""
    level_name = (level or "INFO").upper()
    level_val = getattr(logging, level_name, logging.INFO)
    _logger.setLevel(level_val)


def get_log_level() -> str:
    """Return current global log level name."""
    return logging.getLevelName(_logger.level)


def recent_messages() -> list[str]:
    """Return the most recent log lines, newest first."""
    return list(_recent_handler.messages)


def clear_recent_messages() -> None:
    _recent_handler.messages.clear()
