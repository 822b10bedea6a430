#!/usr/bin/env python3
"""Exception Hierarchy for the Ollama chat bot.

This module provides a structured exception hierarchy for handling errors
across the model transport, the tool system and the conversation protocol.

Design Principles:
    - All exceptions inherit from BotError base class
    - Exceptions preserve context (original error, timestamps, details)
    - Exceptions are categorized by recoverability
    - Each exception includes actionable information

Exception Hierarchy:
    BotError (base)
    ├── ConfigurationError (unrecoverable - fix config)
    ├── ToolError (absorbed by the orchestrator)
    │   ├── InvalidToolDefinitionError
    │   ├── ToolNotFoundError
    │   ├── ToolExecutionError
    │   ├── DuplicateFetchError
    │   └── MalformedToolInvocationError
    ├── NetworkError (surfaced to the user)
    │   ├── ConnectionError
    │   ├── TimeoutError
    │   └── APIError
    ├── ModelError
    │   └── ModelNotFoundError
    └── ProtocolError (terminal model/protocol failures)
        ├── EmptyResponseError
        └── IterationLimitExceeded
"""
from datetime import datetime
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class BotError(Exception):
    """Base exception for all bot errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "TIMEOUT_ERROR")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether this error might be recoverable with retry
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.utcnow()
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Configuration Errors (Unrecoverable)
# ============================================

class ConfigurationError(BotError):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


# ============================================
# Tool Errors
# ============================================

class ToolError(BotError):
    """Base class for tool errors.

    Tool errors never end a conversation run; the orchestrator turns them
    into structured results the model can read.
    """

    def __init__(self, message: str, tool_name: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if tool_name:
            details["tool"] = tool_name
        kwargs.setdefault("recoverable", True)
        super().__init__(message, details=details, **kwargs)
        self.tool_name = tool_name


class InvalidToolDefinitionError(ToolError):
    """Raised when a tool is registered without a name, description or handler."""

    def __init__(self, message: str, tool_name: Optional[str] = None, **kwargs):
        kwargs.setdefault("code", "INVALID_TOOL_DEFINITION")
        kwargs["recoverable"] = False
        super().__init__(message, tool_name=tool_name, **kwargs)


class ToolNotFoundError(ToolError):
    """Raised when a tool name cannot be resolved in the registry."""

    def __init__(self, tool_name: str, **kwargs):
        super().__init__(
            f"Unknown tool: {tool_name}",
            tool_name=tool_name,
            code="TOOL_NOT_FOUND",
            **kwargs,
        )


class ToolExecutionError(ToolError):
    """Raised by tool handlers when they cannot produce a result."""

    def __init__(self, message: str, tool_name: Optional[str] = None, **kwargs):
        kwargs.setdefault("code", "TOOL_EXECUTION_ERROR")
        super().__init__(message, tool_name=tool_name, **kwargs)


class DuplicateFetchError(ToolExecutionError):
    """Raised when every requested URL was already fetched in this invocation."""

    def __init__(self, urls: list[str], **kwargs):
        self.urls = list(urls)
        super().__init__(
            f"All URLs already fetched in this invocation: {', '.join(self.urls)}",
            code="DUPLICATE_FETCH",
            details={"urls": self.urls},
            **kwargs,
        )


class MalformedToolInvocationError(ToolError):
    """Raised when the model requests a tool without a usable name."""

    def __init__(self, message: str = "Tool invocation has no tool name", **kwargs):
        kwargs.setdefault("code", "MALFORMED_TOOL_INVOCATION")
        super().__init__(message, **kwargs)


# ============================================
# Network Errors
# ============================================

class NetworkError(BotError):
    """Base class for transport-level errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionError(NetworkError):
    """Raised when the model server cannot be reached."""

    def __init__(
        self,
        message: str = "Cannot connect to Ollama server. Please ensure Ollama is running.",
        host: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if host:
            details["host"] = host
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details=details,
            **kwargs,
        )


class TimeoutError(NetworkError):
    """Raised when a model call or a whole run exceeds its time budget."""

    def __init__(
        self,
        message: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        if message is None:
            if timeout_seconds:
                message = f"Ollama timed out after {int(timeout_seconds * 1000)} ms"
            else:
                message = "Ollama request timed out"
        super().__init__(
            message,
            code="TIMEOUT_ERROR",
            details=details,
            **kwargs,
        )
        self.timeout_seconds = timeout_seconds


class APIError(NetworkError):
    """Raised when an HTTP endpoint answers with an error status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        response_body: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status_code:
            details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        kwargs.setdefault("code", "API_ERROR")
        # Server errors may succeed on retry, client errors will not
        kwargs.setdefault("recoverable", bool(status_code and status_code >= 500))
        super().__init__(message, details=details, **kwargs)
        self.status_code = status_code
        self.response_body = response_body


# ============================================
# Model Errors
# ============================================

class ModelError(BotError):
    """Base class for errors about the configured model."""


class ModelNotFoundError(ModelError):
    """Raised when the model is not available on the server."""

    def __init__(self, model: str, **kwargs):
        super().__init__(
            f"The model '{model}' was not found. "
            f"You may need to run `ollama pull {model}` first.",
            code="MODEL_NOT_FOUND",
            details={"model": model},
            recoverable=False,
            **kwargs,
        )
        self.model = model


# ============================================
# Protocol Errors
# ============================================

class ProtocolError(BotError):
    """Base class for terminal failures of the tool-calling protocol."""


class EmptyResponseError(ProtocolError):
    """Raised when a terminal model reply carries neither text nor a tool call."""

    def __init__(self, message: str = "Ollama returned an empty response.", **kwargs):
        kwargs.setdefault("code", "EMPTY_RESPONSE")
        super().__init__(message, **kwargs)


class IterationLimitExceeded(ProtocolError):
    """Raised when the tool loop ends without a final answer."""

    def __init__(self, iterations: int, **kwargs):
        super().__init__(
            f"Tool calling did not produce a final answer after {iterations} iterations.",
            code="ITERATION_LIMIT_EXCEEDED",
            details={"iterations": iterations},
            **kwargs,
        )
        self.iterations = iterations


# ============================================
# Rendering
# ============================================

def render_user_error(error: BaseException) -> str:
    """Turn any propagated error into a short, user-facing line.

    Bot errors expose their message (never details or tracebacks); anything
    else gets a generic message.
    """
    if isinstance(error, BotError):
        return f"Error: {error.message}"
    return "Error: An unexpected error occurred while communicating with Ollama."
