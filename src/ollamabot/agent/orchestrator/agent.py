"""
Agent Orchestrator.

Runs the tool-calling protocol for one user prompt:

    DECIDING -> DIRECT
             -> EXECUTING -> INCORPORATING -> EXECUTING ... -> SUCCESS
                                           -> BAILOUT
                                           -> IterationLimitExceeded

The orchestrator reads conversation memory but never writes it; the caller
stores the turn after a successful run.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ...api.exceptions import (
    EmptyResponseError,
    IterationLimitExceeded,
    MalformedToolInvocationError,
    TimeoutError,
    ToolNotFoundError,
)
from ...api.resilience import with_timeout
from ..config import WEB_FETCH_TOOL, WEB_SEARCH_TOOL, BotConfig
from ..domain.entities import (
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
)
from ..domain.ports import ILLMProvider
from ..tools.registry import ToolRegistry
from .invocation import invocation_scope
from .prompt_builder import PromptBuilder
from .tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

EMPTY_RESULTS_BAILOUT = (
    "Sorry, I tried using tools but did not get useful results. "
    "Please try rephrasing your question."
)
NAMELESS_TOOL_BAILOUT = (
    "Sorry, I couldn't proceed: the model kept requesting a tool without a valid "
    "tool name, and no answer could be recovered."
)
SEARCH_ALREADY_PERFORMED = (
    "A web search was already performed for this request. Use the earlier results "
    "or fetch one of their URLs instead of searching again."
)

# Argument keys some models use to name the tool when the name field is empty
TOOL_HINT_KEYS = ("type", "tool", "name", "function")


@dataclass
class OrchestratorConfig:
    """Limits of the tool-calling protocol.

    Attributes:
        tools_enabled: Allow the tool phase at all
        max_tool_iterations: Model calls allowed after tool results, skips included
        max_consecutive_empty_results: Empty results in a row before bailing out
        max_nameless_calls: Nameless tool calls before bailing out
        tool_call_quotas: Maximum calls per tool name in one run
        timeout_seconds: Top-level timeout for one run (None = no limit)
    """

    tools_enabled: bool = True
    max_tool_iterations: int = 5
    max_consecutive_empty_results: int = 2
    max_nameless_calls: int = 2
    tool_call_quotas: dict[str, int] = field(
        default_factory=lambda: {WEB_SEARCH_TOOL: 3, WEB_FETCH_TOOL: 5}
    )
    timeout_seconds: Optional[float] = 60.0

    @classmethod
    def from_bot_config(cls, config: BotConfig) -> OrchestratorConfig:
        return cls(
            tools_enabled=config.tools_enabled,
            max_tool_iterations=config.max_tool_iterations,
            tool_call_quotas=dict(config.tool_call_quotas),
            timeout_seconds=config.timeout_seconds,
        )


def is_empty_result(result: ToolResult) -> bool:
    """Return True for errors, zero search results/pages, or empty data."""
    if not result.success:
        return True
    data = result.data
    if data is None or data == "" or data == {} or data == []:
        return True
    if isinstance(data, dict):
        if data.get("error"):
            return True
        if "results" in data and not data["results"]:
            return True
        if "pages" in data and not data["pages"]:
            return True
    return False


@dataclass
class _Step:
    """Outcome of handling one requested tool call."""

    tool_call: Optional[ToolCall] = None
    result: Optional[ToolResult] = None
    counts_iteration: bool = True
    terminal: Optional[OrchestratorResult] = None


class AgentOrchestrator:
    """Tool-augmented conversation orchestrator.

    Usage:
        orchestrator = AgentOrchestrator(
            llm_provider=provider,
            tool_registry=create_default_registry(config, web_client),
            prompt_builder=PromptBuilder(bot_name="ollamabot"),
            config=OrchestratorConfig.from_bot_config(config),
        )

        result = await orchestrator.run(
            "what time is it?",
            snapshot=contexts.get_history(key),
            user_name="alice",
        )
        print(result.text)

    Architecture:
        - Tools are snapshotted from the registry once per run
        - Per-run state lives in an InvocationState released on every exit path
        - Tool failures become structured results the model sees
        - Transport errors, the top-level timeout and the iteration cap propagate
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        tool_registry: Optional[ToolRegistry] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        tool_executor: Optional[ToolExecutor] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        """Initialize the orchestrator.

        Args:
            llm_provider: Model transport
            tool_registry: Tools the model may call (None = single-call mode)
            prompt_builder: Message list builder
            tool_executor: Executor for individual tool calls
            config: Protocol limits
        """
        self.llm = llm_provider
        self.tools = tool_registry
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.executor = tool_executor or ToolExecutor()
        self.config = config or OrchestratorConfig()

    async def run(
        self,
        prompt: str,
        snapshot: Optional[ContextSnapshot] = None,
        user_name: Optional[str] = None,
        context_key: Optional[str] = None,
        notify: Optional[Callable[[str], Awaitable[None]]] = None,
    ) -> OrchestratorResult:
        """Answer one prompt, using tools when the model asks for them.

        Args:
            prompt: Sanitized user prompt
            snapshot: Conversation memory for the context key
            user_name: Display name of the asking user
            context_key: Memory key (passed to tools for logging)
            notify: Async callback for user-facing status lines

        Returns:
            OrchestratorResult with the text to show the user

        Raises:
            TimeoutError: The run exceeded the top-level timeout
            ConnectionError, ModelNotFoundError: Transport failures
            EmptyResponseError: The model produced no text
            IterationLimitExceeded: No final answer within the iteration cap
        """
        with invocation_scope() as invocation:
            try:
                return await with_timeout(
                    self._run,
                    self.config.timeout_seconds,
                    prompt,
                    snapshot,
                    user_name,
                    ToolRuntime(invocation=invocation, context_key=context_key, notify=notify),
                )
            except asyncio.TimeoutError as e:
                logger.warning(
                    f"[{invocation.invocation_id}] Run timed out after "
                    f"{self.config.timeout_seconds}s"
                )
                raise TimeoutError(timeout_seconds=self.config.timeout_seconds, cause=e)

    async def _tools_for_run(self) -> Optional[ToolRegistry]:
        """Snapshot the catalog, or return None when the tool phase is unavailable."""
        if not self.config.tools_enabled or self.tools is None:
            return None
        tools = self.tools.snapshot()
        if not len(tools):
            return None
        if not await self.llm.supports_tools():
            logger.info(f"Model {self.llm.model_name} does not support tools; single-call mode")
            return None
        return tools

    async def _call_model(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
    ) -> ModelReply:
        return await self.llm.chat(list(messages), tools=tools or None, timeout=self.config.timeout_seconds)

    def _finish(
        self,
        reply: ModelReply,
        outcome: RunOutcome,
        invocation: InvocationState,
        iterations: int = 0,
        tool_calls: Optional[list[ToolCall]] = None,
    ) -> OrchestratorResult:
        if not reply.has_text:
            raise EmptyResponseError()
        return OrchestratorResult(
            text=reply.content.strip(),
            outcome=outcome,
            invocation_id=invocation.invocation_id,
            iterations=iterations,
            tool_calls=tool_calls or [],
        )

    def _bailout(
        self,
        text: str,
        invocation: InvocationState,
        iterations: int,
        tool_calls: list[ToolCall],
    ) -> OrchestratorResult:
        logger.warning(f"[{invocation.invocation_id}] Bailing out: {text}")
        return OrchestratorResult(
            text=text,
            outcome=RunOutcome.BAILOUT,
            invocation_id=invocation.invocation_id,
            iterations=iterations,
            tool_calls=tool_calls,
        )

    async def _run(
        self,
        prompt: str,
        snapshot: Optional[ContextSnapshot],
        user_name: Optional[str],
        runtime: ToolRuntime,
    ) -> OrchestratorResult:
        invocation = runtime.invocation
        tools = await self._tools_for_run()
        messages = self.prompt_builder.build_messages(
            prompt, snapshot, user_name, tools_available=tools is not None
        )

        if tools is None:
            logger.debug(f"[{invocation.invocation_id}] Single-call mode")
            reply = await self._call_model(messages)
            return self._finish(reply, RunOutcome.DIRECT, invocation)

        tool_list = [tools.resolve(name) for name in tools]

        # DECIDING
        reply = await self._call_model(messages, tool_list)
        if reply.tool_call is None:
            logger.debug(f"[{invocation.invocation_id}] Answered directly")
            return self._finish(reply, RunOutcome.DIRECT, invocation)

        iterations = 0
        loop_calls = 0
        executed: list[ToolCall] = []

        while True:
            # EXECUTING
            step = await self._handle_tool_call(reply, tools, messages, runtime, iterations, executed)
            if step.terminal is not None:
                return step.terminal
            executed.append(step.tool_call)

            # INCORPORATING
            messages.append(
                Message(
                    role=MessageRole.ASSISTANT,
                    content=reply.content or "",
                    tool_calls=[step.tool_call],
                )
            )
            messages.append(
                Message(
                    role=MessageRole.TOOL,
                    content=json.dumps(step.result.to_payload(), default=str),
                    tool_name=step.tool_call.name,
                )
            )

            if is_empty_result(step.result):
                invocation.consecutive_empty_results += 1
            else:
                invocation.consecutive_empty_results = 0
            logger.debug(
                f"[{invocation.invocation_id}] {step.tool_call.name} "
                f"success={step.result.success} "
                f"consecutive_empty={invocation.consecutive_empty_results}"
            )
            if invocation.consecutive_empty_results >= self.config.max_consecutive_empty_results:
                return self._bailout(EMPTY_RESULTS_BAILOUT, invocation, iterations, executed)

            if step.counts_iteration:
                iterations += 1
            loop_calls += 1
            reply = await self._call_model(messages, tool_list)

            if reply.tool_call is None:
                return self._finish(reply, RunOutcome.SUCCESS, invocation, iterations, executed)
            # Skipped searches still consume a model call
            if loop_calls >= self.config.max_tool_iterations:
                raise IterationLimitExceeded(loop_calls)

    async def _handle_tool_call(
        self,
        reply: ModelReply,
        tools: ToolRegistry,
        messages: list[Message],
        runtime: ToolRuntime,
        iterations: int,
        executed: list[ToolCall],
    ) -> _Step:
        """Resolve, check and execute the first tool call of reply."""
        invocation = runtime.invocation
        tool_call = reply.tool_call

        if not tool_call.name:
            invocation.nameless_calls += 1
            try:
                self._recover_tool_name(tool_call, tools)
            except MalformedToolInvocationError as e:
                logger.warning(
                    f"[{invocation.invocation_id}] {e.message} "
                    f"(occurrence {invocation.nameless_calls})"
                )
                if invocation.nameless_calls >= self.config.max_nameless_calls:
                    return _Step(terminal=self._bailout(
                        NAMELESS_TOOL_BAILOUT, invocation, iterations, executed
                    ))
                direct = await self._call_model(messages)
                if not direct.has_text:
                    return _Step(terminal=self._bailout(
                        NAMELESS_TOOL_BAILOUT, invocation, iterations, executed
                    ))
                return _Step(terminal=self._finish(
                    direct, RunOutcome.DIRECT, invocation, iterations, executed
                ))

        name = tool_call.name
        try:
            definition = tools.resolve(name)
        except ToolNotFoundError as e:
            logger.warning(f"[{invocation.invocation_id}] {e.message}")
            return _Step(tool_call, ToolResult.failure(tool_call, e.message, synthetic=True))

        count = invocation.count_call(name)
        quota = self.config.tool_call_quotas.get(name)
        if quota is not None and count > quota:
            logger.warning(f"[{invocation.invocation_id}] Quota exceeded for {name} ({count}/{quota})")
            return _Step(tool_call, ToolResult.failure(
                tool_call,
                f"Tool call quota exceeded for {name}: at most {quota} call(s) per request",
                synthetic=True,
            ))

        if name == WEB_SEARCH_TOOL and invocation.web_search_succeeded:
            logger.debug(f"[{invocation.invocation_id}] Skipping repeated web search")
            result = ToolResult(
                tool_call_id=tool_call.id,
                tool_name=name,
                success=True,
                data={"skipped": True, "message": SEARCH_ALREADY_PERFORMED},
                synthetic=True,
            )
            return _Step(tool_call, result, counts_iteration=False)

        result = await self.executor.execute(tool_call, definition, runtime)
        if name == WEB_SEARCH_TOOL and not is_empty_result(result):
            invocation.web_search_succeeded = True
        return _Step(tool_call, result)

    def _recover_tool_name(self, tool_call: ToolCall, tools: ToolRegistry) -> None:
        """Fill in the name of a nameless call from a hint in its arguments.

        Raises:
            MalformedToolInvocationError: No hint, or the hint names no known tool
        """
        arguments = tool_call.arguments or {}
        hint = next(
            (arguments[key] for key in TOOL_HINT_KEYS if isinstance(arguments.get(key), str)),
            None,
        )
        if not hint:
            raise MalformedToolInvocationError("Tool invocation has no tool name and no hint")

        resolved = hint if hint in tools else next(
            (name for name in tools if hint.endswith(f"_{name}")), None
        )
        if resolved is None:
            raise MalformedToolInvocationError(f"Tool invocation hints at unknown tool: {hint}")

        logger.info(f"Recovered nameless tool call as {resolved}")
        tool_call.name = resolved
        tool_call.arguments = self._hinted_arguments(arguments)

    @staticmethod
    def _hinted_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
        nested = arguments.get("parameters") or arguments.get("arguments")
        if isinstance(nested, dict):
            return dict(nested)
        return {k: v for k, v in arguments.items() if k not in TOOL_HINT_KEYS}
