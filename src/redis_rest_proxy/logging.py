"""
Structured logging for the REST proxy.

This module provides:
- Text or JSON log lines with consistent fields
- Per-request context (request id, batch mode, command) carried across awaits
- Access and error log records
- The dictConfig handed to uvicorn so server and proxy logs share one format
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

# =============================================================================
# Log Record Types
# =============================================================================


@dataclass
class LogContext:
    """Context information attached to log records."""

    request_id: str | None = None
    method: str | None = None
    path: str | None = None
    mode: str | None = None
    command: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            request_id=kwargs.get("request_id", self.request_id),
            method=kwargs.get("method", self.method),
            path=kwargs.get("path", self.path),
            mode=kwargs.get("mode", self.mode),
            command=kwargs.get("command", self.command),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class AccessLog:
    """Log record for one served HTTP request."""

    request_id: str
    method: str
    path: str
    status_code: int

    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    duration_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# Request handlers run concurrently, so the active context lives in a ContextVar
_current_context: ContextVar[LogContext] = ContextVar("redis_rest_proxy_log_context", default=LogContext())


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured output and per-request context.

    Example:
        ```python
        logger = StructuredLogger("redis_rest_proxy")

        with logger.request_context("POST", "/pipeline"):
            with logger.bind(mode="pipeline"):
                logger.error("pipeline execution error", error="Pipeline failed")
        ```
    """

    def __init__(
        self,
        name: str = "redis_rest_proxy",
        level: str = "INFO",
        json_output: bool = False,
    ):
        self.name = name
        self.json_output = json_output

        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
            self._logger.addHandler(handler)

    @property
    def context(self) -> LogContext:
        return _current_context.get()

    @contextmanager
    def bind(self, **kwargs) -> Iterator[LogContext]:
        """Extend the current context for the duration of the block."""
        token = _current_context.set(_current_context.get().with_update(**kwargs))
        try:
            yield _current_context.get()
        finally:
            _current_context.reset(token)

    @contextmanager
    def request_context(self, method: str, path: str, request_id: str | None = None) -> Iterator[str]:
        """
        Context manager for a single HTTP request.

        Yields:
            The request ID
        """
        request_id = request_id or generate_request_id()
        token = _current_context.set(LogContext(request_id=request_id, method=method, path=path))
        try:
            yield request_id
        finally:
            _current_context.reset(token)

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        record_data = {
            "message": message,
            **self.context.to_dict(),
        }
        if event_type:
            record_data["event_type"] = event_type
        if data:
            record_data.update(data)

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}".rstrip())

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    def log_access(self, access: AccessLog) -> None:
        """Log a served request."""
        level = logging.INFO if access.status_code < 400 else logging.WARNING
        message = f"{access.method} {access.path} -> {access.status_code}"
        if access.duration_ms is not None:
            message += f" ({access.duration_ms:.1f}ms)"
        self._log(level, message, event_type="access", data=access.to_dict())

    def log_error(self, error: Exception, message: str | None = None, **kwargs) -> None:
        """Log an error with context. Never includes request credentials."""
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            **kwargs,
        }
        if hasattr(error, "code") and hasattr(error.code, "value"):
            error_data["error_code"] = str(error.code.value)
        self._log(logging.ERROR, message or f"Error: {error}", event_type="error", data=error_data)


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        try:
            message_data = json.loads(record.getMessage())
            if isinstance(message_data, dict):
                log_data.update(message_data)
            else:
                log_data["message"] = record.getMessage()
        except (json.JSONDecodeError, TypeError):
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} - {record.name} - {record.levelname} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Utilities
# =============================================================================


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req_{uuid.uuid4().hex[:12]}"


def redact_secret(secret: str | None) -> str:
    """Redact a token or password for safe logging."""
    if not secret:
        return "<not set>"
    if len(secret) <= 8:
        return "***"
    return f"{secret[:2]}...{secret[-2:]}"


def elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def build_log_config(level: str = "INFO", json_output: bool = False) -> dict[str, Any]:
    """dictConfig for uvicorn's own loggers, matching the proxy's formatters."""
    formatter = "json" if json_output else "default"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            app: {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            } for app in ("uvicorn", "uvicorn.error")
        },
        "formatters": {
            "default": {"()": "redis_rest_proxy.logging.TextFormatter"},
            "json": {"()": "redis_rest_proxy.logging.JSONFormatter"},
        },
    }


# =============================================================================
# Global Logger
# =============================================================================

_default_logger: StructuredLogger | None = None


def get_logger(name: str = "redis_rest_proxy") -> StructuredLogger:
    """Get or create the structured logger."""
    global _default_logger
    if _default_logger is None or _default_logger.name != name:
        _default_logger = StructuredLogger(name)
    return _default_logger


def configure_logging(level: str = "INFO", json_output: bool = False) -> StructuredLogger:
    """Configure the default logger, replacing any handler set up earlier."""
    global _default_logger
    logging.getLogger("redis_rest_proxy").handlers.clear()
    _default_logger = StructuredLogger(level=level, json_output=json_output)
    return _default_logger


__all__ = [
    "LogContext",
    "AccessLog",
    "StructuredLogger",
    "JSONFormatter",
    "TextFormatter",
    "generate_request_id",
    "redact_secret",
    "elapsed_ms",
    "build_log_config",
    "get_logger",
    "configure_logging",
]
