"""
Error taxonomy for the REST proxy.

This module provides:
- Error codes for programmatic handling and logs
- The HTTP status each failure kind maps to
- Structured context for debugging (never sent to clients)
- A small `Result` type used by the request parsers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Standardized error codes for the proxy."""

    # Configuration errors (1xxx)
    CONFIG_ERROR = "ERR_1000"
    INVALID_SENTINEL = "ERR_1001"

    # Auth errors (2xxx)
    UNAUTHORIZED = "ERR_2000"

    # Request-shape errors (3xxx)
    REQUEST_SHAPE = "ERR_3000"
    INVALID_JSON = "ERR_3001"
    BATCH_ON_SINGLE_ENDPOINT = "ERR_3002"
    MISSING_COMMAND = "ERR_3003"
    INVALID_BATCH = "ERR_3004"

    # Execution errors (4xxx)
    BATCH_FAILED = "ERR_4000"
    STORE_ERROR = "ERR_4001"

    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    request_id: str | None = None
    mode: str | None = None
    command: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "mode": self.mode,
            "command": self.command,
            **self.extra,
        }


class ProxyError(Exception):
    """
    Base exception for all proxy errors.

    Attributes:
        code: Standardized error code
        message: Human-readable message, safe to return to clients
        status_code: HTTP status the router answers with
        context: Debugging context for logs
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 400

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(ProxyError):
    """Invalid process configuration. Raised at startup, never per request."""

    code = ErrorCode.CONFIG_ERROR
    status_code = 500

    def __init__(self, message: str, *, entry: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.entry = entry
        if entry is not None:
            self.code = ErrorCode.INVALID_SENTINEL


class AuthenticationError(ProxyError):
    """Missing or incorrect bearer token."""

    code = ErrorCode.UNAUTHORIZED
    status_code = 401

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(message, **kwargs)


class RequestShapeError(ProxyError):
    """The request body or path does not describe a command."""

    code = ErrorCode.REQUEST_SHAPE


class BatchExecutionError(ProxyError):
    """A pipeline or transaction could not be executed as a whole."""

    code = ErrorCode.BATCH_FAILED


class StoreError(ProxyError):
    """The backing store rejected a command or could not be reached."""

    code = ErrorCode.STORE_ERROR


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of parsing one piece of request input."""

    value: T | None = None
    error: ProxyError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ProxyError) -> Result[T]:
        return cls(error=error)


def status_for(error: Exception) -> int:
    """HTTP status for any error reaching the router."""
    if isinstance(error, ProxyError):
        return error.status_code
    return 400


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "ProxyError",
    "ConfigurationError",
    "AuthenticationError",
    "RequestShapeError",
    "BatchExecutionError",
    "StoreError",
    "Result",
    "status_for",
]
