"""
Port interfaces (abstract base classes) for the agent module.

These define the contracts that adapters must implement.
Following the Ports & Adapters (Hexagonal) architecture pattern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .entities import Message, ModelReply, ToolDefinition


# ============================================
# LLM Provider Interface
# ============================================


class ILLMProvider(ABC):
    """Interface for the model transport.

    Implementations handle the specifics of one chat API while providing
    a consistent, non-streaming interface to the orchestrator.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier (e.g., 'llama3.2')."""
        pass

    @abstractmethod
    async def supports_tools(self) -> bool:
        """Return True if the configured model accepts a tool list."""
        pass

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        timeout: Optional[float] = None,
    ) -> ModelReply:
        """Generate one reply to the conversation.

        Args:
            messages: Full message list, system prompt included
            tools: Tools the model may invoke (None or empty = no tools)
            timeout: Seconds before the call is cancelled

        Returns:
            The model reply (text and/or tool invocations)

        Raises:
            ConnectionError: Server unreachable
            ModelNotFoundError: Model not available on the server
            TimeoutError: Call exceeded its timeout
        """
        pass

    async def aclose(self) -> None:
        """Release transport resources."""


# ============================================
# Key-Value Store Interface
# ============================================


class IKeyValueStore(ABC):
    """Interface for the storage behind conversation memory.

    Only get/set/delete semantics are required; durability is not.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """Return all stored keys."""
        pass
