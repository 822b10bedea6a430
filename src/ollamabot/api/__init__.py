"""Ollama bot API modules.

This package provides the HTTP-facing pieces shared by the agent:

Classes:
    OllamaWebClient: HTTP client for the hosted web search and fetch APIs

Exceptions:
    BotError: Base exception for all bot errors
    ConfigurationError: Missing or invalid configuration
    ToolError: Tool registration and execution failures
    NetworkError: Transport failures (connection, timeout, HTTP status)
    ModelError: Model not available
    ProtocolError: Tool-calling protocol ended without an answer

Resilience:
    retry_async: Retry with exponential backoff
    with_timeout: Timeout that cancels the in-flight call
    run_worker_pool: Bounded worker pool with a shared cursor
"""

from .exceptions import (
    APIError,
    BotError,
    ConfigurationError,
    ConnectionError,
    DuplicateFetchError,
    EmptyResponseError,
    InvalidToolDefinitionError,
    IterationLimitExceeded,
    MalformedToolInvocationError,
    ModelError,
    ModelNotFoundError,
    NetworkError,
    ProtocolError,
    TimeoutError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    render_user_error,
)
from .ollama_web import OllamaWebClient
from .resilience import retry_async, run_worker_pool, with_timeout

__all__ = [
    # Client
    "OllamaWebClient",
    # Exceptions
    "APIError",
    "BotError",
    "ConfigurationError",
    "ConnectionError",
    "DuplicateFetchError",
    "EmptyResponseError",
    "InvalidToolDefinitionError",
    "IterationLimitExceeded",
    "MalformedToolInvocationError",
    "ModelError",
    "ModelNotFoundError",
    "NetworkError",
    "ProtocolError",
    "TimeoutError",
    "ToolError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "render_user_error",
    # Resilience
    "retry_async",
    "run_worker_pool",
    "with_timeout",
]
