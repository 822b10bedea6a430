"""
Base LLM Provider Implementation.

Provides common functionality for model transports.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ...api.exceptions import BotError
from ..domain.entities import (
    ErrorType,
    Message,
    MessageRole,
    ModelReply,
    ToolCall,
    ToolDefinition,
)
from ..domain.ports import ILLMProvider

logger = logging.getLogger(__name__)


class LLMProviderError(BotError):
    """Raised for transport failures that have no more specific type."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.RECOVERABLE,
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            code="LLM_PROVIDER_ERROR",
            details=details,
            cause=original_error,
            recoverable=error_type == ErrorType.RECOVERABLE,
        )
        self.error_type = error_type
        self.original_error = original_error


@dataclass
class LLMProviderConfig:
    """Configuration for LLM providers.

    Attributes:
        model: Model name to use
        api_key: Optional bearer token
        base_url: Optional custom base URL
        timeout: Default request timeout in seconds
        temperature: Sampling temperature
        max_tokens: Maximum tokens per reply (None = server default)
    """

    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 60.0
    temperature: float = 0.7
    max_tokens: Optional[int] = None
    extra: dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(ILLMProvider, ABC):
    """Base class for LLM provider implementations.

    Converts domain messages and tools to the OpenAI-style wire format and
    parses replies back. Subclasses implement the actual HTTP call.
    """

    def __init__(self, config: LLMProviderConfig):
        """Initialize the provider.

        Args:
            config: Provider configuration
        """
        self.config = config

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self.config.model

    async def supports_tools(self) -> bool:
        """Most modern models support tool calling."""
        return True

    def _format_messages_for_api(
        self, messages: list[Message]
    ) -> list[dict[str, Any]]:
        """Convert domain messages to API format."""
        result = []
        for msg in messages:
            api_msg: dict[str, Any] = {
                "role": msg.role.value,
                "content": msg.content,
            }
            if msg.role == MessageRole.ASSISTANT and msg.tool_calls:
                api_msg["tool_calls"] = [
                    {
                        "function": {
                            "name": tc.name,
                            "arguments": tc.arguments,
                        }
                    }
                    for tc in msg.tool_calls
                ]
            if msg.role == MessageRole.TOOL and msg.tool_name:
                api_msg["tool_name"] = msg.tool_name
            result.append(api_msg)
        return result

    def _format_tools_for_api(
        self, tools: list[ToolDefinition]
    ) -> list[dict[str, Any]]:
        """Convert tool definitions to API format."""
        return [tool.to_openai_format() for tool in tools]

    def _parse_reply(self, data: dict[str, Any]) -> ModelReply:
        """Parse a chat response body into a ModelReply.

        Tool arguments may arrive as a dict or as a JSON string; anything
        unparseable becomes an empty argument dict.
        """
        message = data.get("message") or {}
        tool_calls = []
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") or {}
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    logger.warning(f"Unparseable tool arguments: {arguments[:200]!r}")
                    arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}

            call = ToolCall(name=(function.get("name") or "").strip(), arguments=arguments)
            if raw.get("id"):
                call.id = str(raw["id"])
            tool_calls.append(call)

        return ModelReply(
            content=message.get("content") or None,
            tool_calls=tool_calls,
            model=data.get("model"),
        )

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        timeout: Optional[float] = None,
    ) -> ModelReply:
        """Generate a reply. Must be implemented by subclasses."""
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
