"""Structured logging for the decision engines.

This module provides:
- JSON-formatted log output for production environments
- Call context via ContextVar (request_id, team_id, trace_id)
- get_logger() for module-level loggers
- Human-readable format for development
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

# Context variables for call tracing
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
team_id_var: ContextVar[str | None] = ContextVar("team_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()


def get_team_id() -> str | None:
    """Get the current tenant scope from context."""
    return team_id_var.get()


def get_trace_id() -> str | None:
    """Get the current trace ID from context."""
    return trace_id_var.get()


def set_request_context(
    request_id: str | None = None,
    team_id: str | None = None,
    trace_id: str | None = None,
):
    """Set request context variables."""
    if request_id is not None:
        request_id_var.set(request_id)
    if team_id is not None:
        team_id_var.set(team_id)
    if trace_id is not None:
        trace_id_var.set(trace_id)


def clear_request_context():
    """Clear all request context variables."""
    request_id_var.set(None)
    team_id_var.set(None)
    trace_id_var.set(None)


# LogRecord attributes that are not user-supplied extras
_STANDARD_ATTRS = frozenset(
    {
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
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production environments.

    Output format:
    {
        "timestamp": "2026-01-29T12:34:56.789Z",
        "level": "INFO",
        "logger": "services.conflict_detector",
        "message": "Detected 3 conflict flags",
        "request_id": "abc-123",
        "team_id": "team-456",
        "trace_id": "trace-789",
        "extra": {...}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        team_id = get_team_id()
        trace_id = get_trace_id()

        if request_id:
            log_data["request_id"] = request_id
        if team_id:
            log_data["team_id"] = team_id
        if trace_id:
            log_data["trace_id"] = trace_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
            log_data["exception_type"] = (
                record.exc_info[0].__name__ if record.exc_info[0] else None
            )

        # Fields passed via logger.info("msg", extra={"key": "value"})
        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }

        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable log formatter for development.

    Output format:
    2026-01-29 12:34:56.789 | INFO     | services.retriever | [team-abc] Log message here
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = record.levelname.ljust(8)
        message = record.getMessage()

        team_id = get_team_id()
        request_id = get_request_id()
        tags = []
        if team_id:
            tags.append(team_id)
        if request_id:
            tags.append(request_id[:8])
        prefix = f"[{' '.join(tags)}] " if tags else ""

        formatted = f"{timestamp} | {level} | {record.name} | {prefix}{message}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
):
    """Configure the root logger with structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format. If None, auto-detect from environment.
    """
    if json_format is None:
        # JSON unless DEBUG is explicitly enabled
        debug_mode = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")
        json_format = not debug_mode

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root_logger.addHandler(handler)

    logging.getLogger("neo4j").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the module.

    Relies on configure_logging() being called at startup; falls back to the
    default configuration if nothing has been set up yet.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logging.getLogger().handlers:
        configure_logging()

    return logger


class LogContext:
    """Context manager for setting call context.

    Usage:
        async with LogContext(request_id="abc-123", team_id="team-456"):
            logger.info("This log will include the team scope")
    """

    def __init__(
        self,
        request_id: str | None = None,
        team_id: str | None = None,
        trace_id: str | None = None,
    ):
        self.request_id = request_id
        self.team_id = team_id
        self.trace_id = trace_id
        self._tokens: list = []

    def __enter__(self):
        if self.request_id:
            self._tokens.append(request_id_var.set(self.request_id))
        if self.team_id:
            self._tokens.append(team_id_var.set(self.team_id))
        if self.trace_id:
            self._tokens.append(trace_id_var.set(self.trace_id))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore in reverse order so nested contexts unwind correctly
        for token in reversed(self._tokens):
            token.var.reset(token)
        self._tokens.clear()
        return False

    async def __aenter__(self):
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return self.__exit__(exc_type, exc_val, exc_tb)
