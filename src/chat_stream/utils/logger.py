"""
Logging for Chat Stream, built on the standard ``logging`` module with
python-json-logger for machine-readable files.

Handlers:
- stderr: colored one-line records for people watching a terminal
- <log_dir>/turns.jsonl: INFO and above as JSON lines (only when log_dir is set)
- <log_dir>/errors.jsonl: ERROR and above as JSON lines (only when log_dir is set)
"""

from __future__ import annotations

import logging
import logging.handlers
import re
import sys

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from chat_stream.core.constants import (
    LOG_BACKUP_COUNT_ERRORS,
    LOG_BACKUP_COUNT_TURNS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    get_settings,
)
from chat_stream.core.turn_context import get_turn_context

#: Substitutions applied to message previews before they reach a log line
REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b[\w.%+-]+@[\w.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"\b(?:\d{4}[- ]?){3}\d{4}\b"), "[CARD]"),
    (re.compile(r"\b(?:sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b"), "[API_KEY]"),
    (re.compile(r"\b(?:password|secret|token)\s*[:=]\s*\S+", re.IGNORECASE), "[REDACTED]"),
]

TURN_LOG_FORMAT = "%(timestamp)s %(levelname)s %(message)s %(session_id)s %(turn_id)s %(outcome)s"
ERROR_LOG_FORMAT = "%(timestamp)s %(levelname)s %(name)s %(message)s"


class TurnFilter(logging.Filter):
    """Pass records destined for the turn log (INFO and up)."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.INFO


class ErrorFilter(logging.Filter):
    """Pass records destined for the error log (ERROR and up)."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class ColoredConsoleFormatter(logging.Formatter):
    """Renders ``HH:MM:SS [LEVEL] name - message`` with the level in color."""

    _COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[32;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    _RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        level = f"[{record.levelname}]"
        if color := self._COLORS.get(record.levelno):
            level = f"{color}{level}{self._RESET}"

        stamp = self.formatTime(record, "%H:%M:%S")
        line = f"{stamp} {level} {record.name} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _json_file_handler(
    path: Path,
    *,
    level: int,
    backups: int,
    log_filter: logging.Filter,
    fmt: str,
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_SIZE, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    handler.addFilter(log_filter)
    handler.setFormatter(jsonlogger.JsonFormatter(fmt, timestamp=True))
    return handler


def setup_logging(name: str = "chat-stream", debug: bool | None = None) -> logging.Logger:
    """
    Configure the named logger and return it.

    Args:
        name: Logger name
        debug: Force DEBUG on the console (defaults to settings.debug)

    Returns:
        The configured logger (handlers replaced, propagation off)
    """
    settings = get_settings()
    debug = settings.debug if debug is None else debug

    configured = logging.getLogger(name)
    configured.setLevel(logging.DEBUG)
    configured.handlers = []
    configured.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    console.setFormatter(ColoredConsoleFormatter())
    configured.addHandler(console)

    if settings.log_dir is None:
        return configured

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    configured.addHandler(
        _json_file_handler(
            settings.log_dir / "turns.jsonl",
            level=logging.INFO,
            backups=LOG_BACKUP_COUNT_TURNS,
            log_filter=TurnFilter(),
            fmt=TURN_LOG_FORMAT,
        )
    )
    configured.addHandler(
        _json_file_handler(
            settings.log_dir / "errors.jsonl",
            level=logging.ERROR,
            backups=LOG_BACKUP_COUNT_ERRORS,
            log_filter=ErrorFilter(),
            fmt=ERROR_LOG_FORMAT,
        )
    )
    return configured


class ChatLogger:
    """
    Facade over the package logger.

    Keyword arguments become structured ``extra`` fields, and every record is
    stamped with the active turn (session id, turn id, elapsed ms).
    """

    def __init__(self, name: str = "chat-stream"):
        self.logger = setup_logging(name)

    def _with_turn(self, fields: dict[str, Any]) -> dict[str, Any]:
        ctx = get_turn_context()
        if ctx is not None:
            for key, value in ctx.to_log_context().items():
                fields.setdefault(key, value)
        return fields

    def debug(self, message: str, **fields: Any) -> None:
        self.logger.debug(message, extra=self._with_turn(fields))

    def info(self, message: str, **fields: Any) -> None:
        self.logger.info(message, extra=self._with_turn(fields))

    def warning(self, message: str, **fields: Any) -> None:
        self.logger.warning(message, extra=self._with_turn(fields))

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self.logger.error(message, extra=self._with_turn(fields), exc_info=exc_info)

    @staticmethod
    def redact(text: str) -> str:
        """Mask emails, card numbers, API keys and inline credentials."""
        for pattern, replacement in REDACTIONS:
            text = pattern.sub(replacement, text)
        return text

    def _preview(self, text: str) -> str:
        flat = text.replace("\n", " ")
        clipped = flat[:LOG_PREVIEW_LENGTH] + ("..." if len(flat) > LOG_PREVIEW_LENGTH else "")
        return self.redact(clipped)

    def log_turn(
        self,
        user_input: str,
        response: str,
        outcome: str,
        tool_calls: int = 0,
        duration_ms: float | None = None,
        has_token_usage: bool = False,
    ) -> None:
        """
        Record one finished turn.

        Message text only appears (redacted, clipped) when content logging is
        enabled; otherwise both sides show as ``[HIDDEN]``.
        """
        show_content = bool(get_settings().enable_content_logging)
        asked = self._preview(user_input) if show_content else "[HIDDEN]"
        answered = self._preview(response) if show_content else "[HIDDEN]"

        summary = f"Turn {outcome}: User: {asked} → AI: {answered}"
        if tool_calls:
            summary += f" [{tool_calls} tools]"
        if duration_ms:
            summary += f" [{duration_ms:.0f}ms]"

        fields: dict[str, Any] = {
            "turn_record": True,
            "timestamp": datetime.now(UTC).isoformat(),
            "outcome": outcome,
            "chars_input": len(user_input),
            "chars_response": len(response),
            "tools": tool_calls,
            "token_usage": has_token_usage,
            "content_logging": show_content,
        }
        if duration_ms is not None:
            fields["ms"] = int(duration_ms)

        self.logger.info(summary, extra=self._with_turn(fields))


logger = ChatLogger()
