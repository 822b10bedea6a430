"""
Tool Registry.

Holds the catalog of tools the model may invoke. One registry instance is
created per bot and handed to the orchestrator; nothing here is global.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from ...api.exceptions import InvalidToolDefinitionError, ToolNotFoundError
from ..config import CURRENT_TIME_TOOL
from ..domain.entities import ToolDefinition, ToolRuntime

logger = logging.getLogger(__name__)


async def get_current_time(arguments: dict[str, Any], runtime: ToolRuntime) -> dict[str, str]:
    """Built-in tool: current date and time in ISO 8601 (UTC)."""
    return {"timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}


def current_time_tool() -> ToolDefinition:
    return ToolDefinition(
        name=CURRENT_TIME_TOOL,
        description="Get the current date and time in ISO 8601 format (UTC)",
        parameters={"type": "object", "properties": {}},
        handler=get_current_time,
        timeout_seconds=5,
    )


class ToolRegistry:
    """Catalog of named tool definitions.

    The current-time tool is always present; register() may override it
    but reset() restores it.

    Usage:
        registry = ToolRegistry()
        registry.register("web_search", ToolDefinition(...))

        # Snapshot for one run
        tools = registry.snapshot()

        # Explicit lookup with a typed not-found outcome
        definition = registry.resolve("web_search")
    """

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}
        self._install_builtins()

    def _install_builtins(self) -> None:
        clock = current_time_tool()
        self._tools[clock.name] = clock

    def register(self, name: str, definition: ToolDefinition) -> None:
        """Register a tool, replacing any tool with the same name.

        Args:
            name: Unique tool name
            definition: Tool definition (its name field is set to name)

        Raises:
            InvalidToolDefinitionError: If name or description is empty or
                the handler is not callable
        """
        if not name or not str(name).strip():
            raise InvalidToolDefinitionError("Tool must have a name")
        if definition is None:
            raise InvalidToolDefinitionError(
                f"Tool \"{name}\" must provide a definition", tool_name=name
            )
        if not callable(definition.handler):
            raise InvalidToolDefinitionError(
                f"Tool \"{name}\" must provide a callable handler", tool_name=name
            )
        if not definition.description or not definition.description.strip():
            raise InvalidToolDefinitionError(
                f"Tool \"{name}\" must provide a description", tool_name=name
            )

        if name in self._tools:
            logger.info(f"Overriding registered tool: {name}")
        self._tools[name] = replace(definition, name=name)
        logger.debug(f"Registered tool: {name}")

    def list_tools(self) -> dict[str, ToolDefinition]:
        """Return an independent snapshot of all registered tools.

        Mutating the returned mapping or the definitions in it does not
        affect the registry.
        """
        return {
            name: replace(definition, parameters=copy.deepcopy(definition.parameters))
            for name, definition in self._tools.items()
        }

    def snapshot(self) -> ToolRegistry:
        """Return a registry holding an independent copy of the current tools.

        Registrations made after the snapshot is taken are not visible in it.
        """
        frozen = ToolRegistry()
        frozen._tools = self.list_tools()
        return frozen

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Find a tool definition by name."""
        return self._tools.get(name)

    def resolve(self, name: Optional[str]) -> ToolDefinition:
        """Find a tool definition by name.

        Raises:
            ToolNotFoundError: If no tool is registered under name
        """
        definition = self.get(name) if name else None
        if definition is None:
            raise ToolNotFoundError(name or "<empty>")
        return definition

    def reset(self) -> None:
        """Remove every tool except the built-ins (restored to their defaults)."""
        self._tools.clear()
        self._install_builtins()

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._tools))

    def __len__(self) -> int:
        return len(self._tools)
