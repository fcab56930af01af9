"""Structured logging for election participants.

Provides:
- JSON-formatted logs for log aggregation systems
- Election context (root path, candidate node) propagated via contextvars
- Console format for development

Usage:
    from zkelect.observability.logging import configure_logging

    configure_logging()  # ZKELECT_LOG_LEVEL, ZKELECT_LOG_JSON
    configure_logging(json_format=True, level="DEBUG")

    # Election context is automatically included in logs
    with LogContext(election="/election", candidate="_0000000003"):
        logger.info("Elected")
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from zkelect.config import ElectionSettings
from zkelect.config import settings as default_settings

# Context variables for election correlation
election_var: contextvars.ContextVar[str] = contextvars.ContextVar("election", default="")
candidate_var: contextvars.ContextVar[str] = contextvars.ContextVar("candidate", default="")

_CONTEXT_VARS = {
    "election": election_var,
    "candidate": candidate_var,
}

_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
}


class JsonFormatter(logging.Formatter):
    """JSON log formatter with election context support.

    Output format:
    {
        "timestamp": "2026-01-10T12:34:56.789Z",
        "level": "INFO",
        "logger": "zkelect.election",
        "message": "Elected leader",
        "module": "candidate",
        "function": "_announce_leader",
        "line": 42,
        "election": "/election",
        "candidate": "_0000000003"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, var in _CONTEXT_VARS.items():
            value = var.get()
            if value:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Extra fields passed via logger.info(..., extra={...})
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_data[key] = value
                except (TypeError, ValueError):
                    log_data[key] = str(value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Output format:
    2026-01-10 12:34:56 | INFO | zkelect.election | Elected leader | /election/_0000000003
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        message = record.getMessage()

        election = election_var.get()
        candidate = candidate_var.get()
        context = ""
        if election:
            context = f" | {election}/{candidate}" if candidate else f" | {election}"

        result = f"{timestamp} | {level:8} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool | None = None,
    level: str | None = None,
    use_colors: bool = True,
    settings: ElectionSettings | None = None,
) -> None:
    """Configure application-wide logging.

    Args:
        json_format: Use JSON format (recommended for production).
            Defaults to ``settings.log_json``.
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to ``settings.log_level``.
        use_colors: Use ANSI colors in console format
        settings: Settings to read the defaults from (the global settings
            when omitted)
    """
    settings = settings or default_settings
    if json_format is None:
        json_format = settings.log_json
    if level is None:
        level = settings.log_level

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))

    root_logger.addHandler(handler)

    # The ZooKeeper client is chatty; only let it through when tracing
    kazoo_level = logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    logging.getLogger("kazoo").setLevel(kazoo_level)


class LogContext:
    """Context manager for adding temporary election context.

    Usage:
        with LogContext(election="/election", candidate="_0000000001"):
            logger.info("Watching predecessor")
    """

    def __init__(self, **kwargs: str) -> None:
        self.extra = kwargs
        self._tokens: dict[str, contextvars.Token[str]] = {}

    def __enter__(self) -> "LogContext":
        for key, value in self.extra.items():
            var = _CONTEXT_VARS.get(key)
            if var is not None and value:
                self._tokens[key] = var.set(value)
        return self

    def __exit__(self, *args: Any) -> None:
        for key, token in self._tokens.items():
            _CONTEXT_VARS[key].reset(token)
        self._tokens.clear()
