"""Exception hierarchy for the Morrow brain.

Exception Hierarchy:
    MorrowError (base)
    ├── ConfigurationError (fatal to the invocation - fix config)
    ├── ProviderError (upstream LLM failure - aborts the loop)
    ├── ToolExecutionError (recorded in the trace, loop continues)
    │   ├── UnknownToolError
    │   ├── DisallowedToolError
    │   ├── MissingParameterError
    │   └── BlockedURLError
    └── KnowledgeStoreError

Budget exhaustion (step limit, time limit) is not an exception: it is a
terminal state of the run, see ``BrainState``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from .entities import ErrorType


class MorrowError(Exception):
    """Base exception for all Morrow errors.

    Attributes:
        message: Human-readable error description
        error_type: Classification used for HTTP mapping and logging
        details: Additional context as a dictionary
        cause: The original exception that caused this error
        timestamp: When the error occurred
    """

    default_error_type = ErrorType.FATAL

    def __init__(
        self,
        message: str,
        error_type: Optional[ErrorType] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type or self.default_error_type
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.__cause__ = cause

    @property
    def recoverable(self) -> bool:
        return self.error_type != ErrorType.FATAL

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_type={self.error_type.value!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_type": self.error_type.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(MorrowError):
    """A required credential or setting is missing or invalid."""

    default_error_type = ErrorType.FATAL

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {}) or {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details=details, **kwargs)


class ProviderError(MorrowError):
    """An upstream LLM call failed (network, rate limit, malformed response)."""

    default_error_type = ErrorType.RECOVERABLE

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {}) or {}
        if provider:
            details["provider"] = provider
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details, **kwargs)
        self.provider = provider
        self.status_code = status_code


class ToolExecutionError(MorrowError):
    """A tool could not complete; the orchestrator records it and continues."""

    default_error_type = ErrorType.RECOVERABLE

    def __init__(self, message: str, tool: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {}) or {}
        if tool:
            details["tool"] = tool
        super().__init__(message, details=details, **kwargs)
        self.tool = tool


class UnknownToolError(ToolExecutionError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}", tool=name)


class DisallowedToolError(ToolExecutionError):
    def __init__(self, name: str):
        super().__init__(f"Tool {name} not allowed", tool=name)


class MissingParameterError(ToolExecutionError):
    def __init__(self, name: str, parameter: str):
        super().__init__(
            f"Missing required parameter: {parameter}",
            tool=name,
            details={"parameter": parameter},
        )
        self.parameter = parameter


class BlockedURLError(ToolExecutionError):
    """The request-forgery guard refused a URL."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Invalid or blocked URL: {reason}",
            tool="website_intel",
            details={"url": url},
        )
        self.url = url
        self.reason = reason


class KnowledgeStoreError(MorrowError):
    """The knowledge or vector store cannot serve the request."""

    default_error_type = ErrorType.RECOVERABLE
