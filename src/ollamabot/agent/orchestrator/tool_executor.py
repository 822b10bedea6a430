"""
Tool Executor.

Runs a single tool call with a timeout and converts every failure into a
structured result the model can read. Nothing raised by a handler escapes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone

from ...api.exceptions import BotError
from ..domain.entities import ToolCall, ToolDefinition, ToolResult, ToolRuntime

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Executes tool calls with error handling.

    Usage:
        executor = ToolExecutor()
        result = await executor.execute(tool_call, definition, runtime)
        if not result.success:
            ...  # result.to_payload() == {"error": "..."}
    """

    async def _invoke(self, definition: ToolDefinition, tool_call: ToolCall, runtime: ToolRuntime):
        value = definition.handler(dict(tool_call.arguments), runtime)
        if inspect.isawaitable(value):
            value = await value
        return value

    async def execute(
        self,
        tool_call: ToolCall,
        definition: ToolDefinition,
        runtime: ToolRuntime,
    ) -> ToolResult:
        """Execute one tool call.

        Args:
            tool_call: Call requested by the model
            definition: Resolved tool definition
            runtime: Per-invocation runtime handed to the handler

        Returns:
            ToolResult (success with data, or failure with an error message)
        """
        logger.info(f"Executing tool: {definition.name}")
        started = time.perf_counter()

        try:
            if definition.timeout_seconds:
                data = await asyncio.wait_for(
                    self._invoke(definition, tool_call, runtime),
                    timeout=definition.timeout_seconds,
                )
            else:
                data = await self._invoke(definition, tool_call, runtime)
            result = ToolResult(
                tool_call_id=tool_call.id,
                tool_name=definition.name,
                success=True,
                data=data,
            )
            logger.debug(f"Tool {definition.name} result: {str(data)[:300]}")

        except asyncio.TimeoutError:
            message = f"Tool {definition.name} timed out after {definition.timeout_seconds:g} s"
            logger.error(message)
            result = ToolResult.failure(tool_call, message)

        except BotError as e:
            logger.error(f"Tool {definition.name} failed: {e.message}")
            result = ToolResult.failure(tool_call, e.message)

        except Exception as e:
            logger.exception(f"Tool {definition.name} raised an unexpected error")
            result = ToolResult.failure(tool_call, str(e) or type(e).__name__)

        result.latency_ms = int((time.perf_counter() - started) * 1000)
        tool_call.executed_at = datetime.now(timezone.utc)
        if result.success:
            tool_call.result = result.data
        else:
            tool_call.error = result.error
        return result
