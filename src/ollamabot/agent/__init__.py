"""
Ollama Chat Bot Agent Module.

Answers chat questions with a local or hosted Ollama model, letting the
model call tools before it answers and remembering recent turns.

Architecture:
- Domain: Core entities and port interfaces
- Providers: Model transport (Ollama chat API)
- Tools: Registry, clock, sandboxed Python, web search and fetch
- Memory: Conversation context with TTL and background summarization
- Orchestrator: Tool-calling protocol
- Service: Prompt cleaning, memory lookup and error rendering for adapters
"""

from .config import BotConfig
from .domain.entities import (
    ContextScope,
    ContextSnapshot,
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
from .memory import ContextStore, ConversationSummarizer, build_context_key
from .orchestrator import AgentOrchestrator, OrchestratorConfig, PromptBuilder
from .providers import LLMProviderConfig, OllamaProvider
from .service import ChatResponse, ChatService
from .tools import FetchCoordinator, ToolRegistry, create_default_registry

__all__ = [
    "BotConfig",
    # Entities
    "ContextScope",
    "ContextSnapshot",
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
    # Components
    "ContextStore",
    "ConversationSummarizer",
    "build_context_key",
    "AgentOrchestrator",
    "OrchestratorConfig",
    "PromptBuilder",
    "LLMProviderConfig",
    "OllamaProvider",
    "ChatResponse",
    "ChatService",
    "FetchCoordinator",
    "ToolRegistry",
    "create_default_registry",
]
