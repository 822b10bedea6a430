"""Domain entities and port interfaces for the agent module."""

from .entities import (
    ContextScope,
    ContextSnapshot,
    ConversationContext,
    ErrorType,
    InvocationState,
    Message,
    MessageRole,
    ModelReply,
    OrchestratorResult,
    RunOutcome,
    ToolCall,
    ToolDefinition,
    ToolResult,
    ToolRuntime,
    Turn,
)
from .ports import (
    IKeyValueStore,
    ILLMProvider,
)

__all__ = [
    # Entities
    "ContextScope",
    "ContextSnapshot",
    "ConversationContext",
    "ErrorType",
    "InvocationState",
    "Message",
    "MessageRole",
    "ModelReply",
    "OrchestratorResult",
    "RunOutcome",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "ToolRuntime",
    "Turn",
    # Ports
    "IKeyValueStore",
    "ILLMProvider",
]
