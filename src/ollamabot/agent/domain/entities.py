"""
Domain entities for the chat bot agent.

These are pure domain objects with no infrastructure dependencies.
They define the core data structures used throughout the agent module.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# ============================================
# Conversation Memory
# ============================================


class ContextScope(str, Enum):
    """Granularity at which conversation memory is shared."""

    ROOM_USER = "room-user"
    ROOM = "room"
    THREAD = "thread"

    @classmethod
    def parse(cls, value: Optional[str]) -> ContextScope:
        """Parse a scope name, falling back to ROOM_USER for unknown values."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.ROOM_USER


@dataclass(frozen=True)
class Turn:
    """One user prompt and the assistant answer to it.

    Attributes:
        user_text: What the user asked
        assistant_text: What the bot answered
        user_metadata: Optional adapter data (e.g. display_name)
        created_at: Epoch seconds when the turn was stored
    """

    user_text: str
    assistant_text: str
    user_metadata: Optional[dict[str, Any]] = None
    created_at: float = field(default_factory=time.time)


@dataclass
class ConversationContext:
    """Memory kept for one context key.

    Attributes:
        key: Context key derived from scope and room/user/thread ids
        history: Retained turns, oldest first
        summary: Compressed account of turns evicted by summarization
        summarized_until: Epoch seconds of the last summarization
        last_updated: Epoch seconds of the last stored turn (TTL anchor)
    """

    key: str
    history: list[Turn] = field(default_factory=list)
    summary: Optional[str] = None
    summarized_until: Optional[float] = None
    last_updated: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ContextSnapshot:
    """What the orchestrator sees of a conversation: raw turns plus summary."""

    history: tuple[Turn, ...] = ()
    summary: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.history and not self.summary


# ============================================
# Message Types
# ============================================


class MessageRole(str, Enum):
    """Role of a message in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass
class Message:
    """A single message sent to the model.

    Attributes:
        role: Message role (user, assistant, system, tool)
        content: Message text content
        tool_calls: Tool calls requested by an assistant message
        tool_name: Tool that produced a tool message
    """

    role: MessageRole
    content: str
    tool_calls: Optional[list[ToolCall]] = None
    tool_name: Optional[str] = None


# ============================================
# Tool System
# ============================================


@dataclass
class InvocationState:
    """State scoped to one end-to-end orchestrator run.

    Never persisted. fetched_urls in particular must not outlive the run.

    Attributes:
        invocation_id: Identifier for log correlation
        tool_call_counts: Calls per tool name (quota accounting)
        consecutive_empty_results: Empty tool results in a row
        fetched_urls: URLs fetched successfully in this run
        nameless_calls: Tool invocations that arrived without a name
        web_search_succeeded: True once a web search returned results
        search_results: Search hits by URL (title and snippet for fetch fallback)
    """

    invocation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    tool_call_counts: dict[str, int] = field(default_factory=dict)
    consecutive_empty_results: int = 0
    fetched_urls: set[str] = field(default_factory=set)
    nameless_calls: int = 0
    web_search_succeeded: bool = False
    search_results: dict[str, dict[str, str]] = field(default_factory=dict)

    def count_call(self, tool_name: str) -> int:
        """Record one call of tool_name and return the new count."""
        self.tool_call_counts[tool_name] = self.tool_call_counts.get(tool_name, 0) + 1
        return self.tool_call_counts[tool_name]


# Handlers receive (arguments, runtime) and may be sync or async
ToolHandler = Callable[[dict[str, Any], "ToolRuntime"], Union[Any, Awaitable[Any]]]


@dataclass
class ToolDefinition:
    """Definition of an available tool.

    Attributes:
        name: Tool name (e.g., 'web_search')
        description: Human-readable description
        parameters: JSON Schema for parameters
        handler: Callable producing a JSON-serializable result
        timeout_seconds: Maximum execution time (None = no limit)
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    handler: Optional[ToolHandler] = None
    timeout_seconds: Optional[float] = 30

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to the function calling format Ollama accepts."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters or {"type": "object", "properties": {}},
            },
        }


@dataclass
class ToolCall:
    """A tool call made by the model.

    Attributes:
        id: Unique tool call identifier (for correlation)
        name: Tool name being called (may be empty for malformed calls)
        arguments: Arguments passed to the tool
        result: Result from tool execution (set after execution)
        error: Error message if execution failed
        executed_at: When the tool was executed
    """

    name: str
    arguments: dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    result: Optional[Any] = None
    error: Optional[str] = None
    executed_at: Optional[datetime] = None

    @property
    def is_executed(self) -> bool:
        """Check if this tool call has been executed."""
        return self.executed_at is not None


@dataclass
class ToolResult:
    """Result from a tool execution.

    Attributes:
        tool_call_id: ID of the tool call this is a result for
        tool_name: Tool that was (or would have been) executed
        success: Whether execution succeeded
        data: Result data (if successful)
        error: Error message (if failed)
        latency_ms: Execution time in milliseconds
        synthetic: True if the handler was not called (quota, skip, unknown tool)
    """

    tool_call_id: str
    tool_name: str
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    latency_ms: Optional[int] = None
    synthetic: bool = False

    def to_payload(self) -> Any:
        """Return what the model sees for this result."""
        if not self.success:
            return {"error": self.error or "Tool failed"}
        return self.data

    @classmethod
    def failure(
        cls,
        tool_call: ToolCall,
        message: str,
        synthetic: bool = False,
    ) -> ToolResult:
        return cls(
            tool_call_id=tool_call.id,
            tool_name=tool_call.name,
            success=False,
            error=message,
            synthetic=synthetic,
        )


@dataclass
class ToolRuntime:
    """Runtime context handed to tool handlers.

    Attributes:
        invocation: Per-run state (quotas, fetched URLs)
        context_key: Conversation key of the current run
        notify: Optional async callback for user-facing status lines
    """

    invocation: InvocationState
    context_key: Optional[str] = None
    notify: Optional[Callable[[str], Awaitable[None]]] = None

    async def send_status(self, text: str) -> None:
        """Send a status line to the user if a callback is configured."""
        if self.notify is not None:
            await self.notify(text)


# ============================================
# Model Replies and Run Results
# ============================================


@dataclass
class ModelReply:
    """A non-streaming reply from the model transport.

    Attributes:
        content: Text content (may be empty)
        tool_calls: Tool invocations requested by the model
        model: Model that produced the reply
    """

    content: Optional[str] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: Optional[str] = None

    @property
    def tool_call(self) -> Optional[ToolCall]:
        """The invocation the protocol acts on (the first one)."""
        return self.tool_calls[0] if self.tool_calls else None

    @property
    def has_text(self) -> bool:
        return bool(self.content and self.content.strip())


class ErrorType(str, Enum):
    """Types of transport errors."""

    RECOVERABLE = "recoverable"  # Can retry
    FATAL = "fatal"  # Must abort
    TIMEOUT = "timeout"  # Model call timed out


class RunOutcome(str, Enum):
    """Terminal state of one orchestrator run."""

    DIRECT = "direct"  # Answered without executing a tool
    SUCCESS = "success"  # Answered after one or more tool rounds
    BAILOUT = "bailout"  # Gave up with a fixed apology


@dataclass
class OrchestratorResult:
    """Final result of one invocation.

    Attributes:
        text: Text to show the user
        outcome: How the run terminated
        invocation_id: Invocation identifier for log correlation
        iterations: Counted tool rounds
        tool_calls: Tool calls executed or synthesized during the run
    """

    text: str
    outcome: RunOutcome
    invocation_id: str
    iterations: int = 0
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def is_bailout(self) -> bool:
        return self.outcome == RunOutcome.BAILOUT
