"""
Unit tests for the tool registry.

Tests registration validation, override of built-ins, snapshot isolation
and reset behavior.
"""

import pytest

from src.ollamabot.agent.config import CURRENT_TIME_TOOL
from src.ollamabot.agent.domain.entities import InvocationState, ToolDefinition, ToolRuntime
from src.ollamabot.agent.tools.registry import ToolRegistry
from src.ollamabot.api.exceptions import InvalidToolDefinitionError, ToolNotFoundError


def make_tool(name="echo", description="Echo the input", handler=None):
    return ToolDefinition(
        name=name,
        description=description,
        parameters={"type": "object", "properties": {"text": {"type": "string"}}},
        handler=handler if handler is not None else (lambda args, runtime: args),
    )


@pytest.fixture
def registry():
    return ToolRegistry()


class TestRegistration:
    """Test register() validation."""

    def test_builtin_clock_present(self, registry):
        """The current-time tool is registered from the start."""
        assert CURRENT_TIME_TOOL in registry
        assert len(registry) == 1

    def test_register_valid_tool(self, registry):
        """A complete definition is stored under its name."""
        registry.register("echo", make_tool())

        assert "echo" in registry
        assert registry.get("echo").description == "Echo the input"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_rejects_empty_name(self, registry, name):
        """Empty names are rejected."""
        with pytest.raises(InvalidToolDefinitionError):
            registry.register(name, make_tool())

    @pytest.mark.parametrize("description", ["", "  "])
    def test_rejects_empty_description(self, registry, description):
        """Empty descriptions are rejected."""
        with pytest.raises(InvalidToolDefinitionError):
            registry.register("echo", make_tool(description=description))

    def test_rejects_non_callable_handler(self, registry):
        """Handlers must be callable."""
        with pytest.raises(InvalidToolDefinitionError):
            registry.register("echo", make_tool(handler="not callable"))

    def test_rejected_tool_not_stored(self, registry):
        """A failed registration leaves the registry unchanged."""
        with pytest.raises(InvalidToolDefinitionError):
            registry.register("echo", make_tool(description=""))

        assert "echo" not in registry

    def test_reregistration_replaces(self, registry):
        """Registering an existing name overwrites it."""
        registry.register("echo", make_tool(description="first"))
        registry.register("echo", make_tool(description="second"))

        assert registry.get("echo").description == "second"
        assert len(registry) == 2

    def test_override_builtin_clock(self, registry):
        """The built-in clock can be intentionally overridden."""
        registry.register(CURRENT_TIME_TOOL, make_tool(name=CURRENT_TIME_TOOL, description="Fixed clock"))

        assert registry.get(CURRENT_TIME_TOOL).description == "Fixed clock"


class TestSnapshot:
    """Test list_tools() and snapshot() isolation."""

    def test_mutating_snapshot_does_not_affect_registry(self, registry):
        """Removing from the returned mapping leaves the registry intact."""
        registry.register("echo", make_tool())

        snapshot = registry.list_tools()
        snapshot.pop("echo")
        snapshot["extra"] = make_tool(name="extra")

        assert "echo" in registry
        assert "extra" not in registry

    def test_mutating_definition_does_not_affect_registry(self, registry):
        """Definitions in the snapshot are copies, schemas included."""
        registry.register("echo", make_tool())

        snapshot = registry.list_tools()
        snapshot["echo"].description = "changed"
        snapshot["echo"].parameters["properties"]["injected"] = {"type": "string"}

        live = registry.get("echo")
        assert live.description == "Echo the input"
        assert "injected" not in live.parameters["properties"]

    def test_later_registration_not_visible_in_snapshot(self, registry):
        """A snapshot taken before registration does not see the new tool."""
        snapshot = registry.list_tools()
        registry.register("echo", make_tool())

        assert "echo" not in snapshot

    def test_snapshot_registry_is_frozen(self, registry):
        """snapshot() returns a registry unaffected by later changes."""
        registry.register("echo", make_tool())

        frozen = registry.snapshot()
        registry.register("late", make_tool(name="late"))
        registry.reset()

        assert list(frozen) == [CURRENT_TIME_TOOL, "echo"]
        assert frozen.resolve("echo").description == "Echo the input"
        with pytest.raises(ToolNotFoundError):
            frozen.resolve("late")


class TestResolveAndReset:
    """Test resolve() and reset()."""

    def test_resolve_unknown_raises(self, registry):
        """Unknown names produce a typed not-found error."""
        with pytest.raises(ToolNotFoundError) as exc_info:
            registry.resolve("missing")

        assert exc_info.value.tool_name == "missing"
        assert "Unknown tool: missing" in str(exc_info.value)

    def test_resolve_empty_name_raises(self, registry):
        with pytest.raises(ToolNotFoundError, match="<empty>"):
            registry.resolve("")

    def test_reset_keeps_only_builtin(self, registry):
        """reset() removes everything except the clock tool."""
        registry.register("echo", make_tool())
        registry.register("other", make_tool(name="other"))

        registry.reset()

        assert list(registry.list_tools()) == [CURRENT_TIME_TOOL]

    def test_reset_restores_overridden_builtin(self, registry):
        """reset() restores the default clock after an override."""
        registry.register(CURRENT_TIME_TOOL, make_tool(name=CURRENT_TIME_TOOL, description="Fixed clock"))

        registry.reset()

        assert registry.get(CURRENT_TIME_TOOL).description != "Fixed clock"

    def test_registries_are_independent(self):
        """Two registry instances share no state."""
        first = ToolRegistry()
        second = ToolRegistry()
        first.register("echo", make_tool())

        assert "echo" not in second


class TestBuiltinClock:
    """Test the current-time tool."""

    @pytest.mark.asyncio
    async def test_returns_iso_timestamp(self, registry):
        """The clock handler returns an ISO 8601 UTC timestamp."""
        definition = registry.resolve(CURRENT_TIME_TOOL)
        runtime = ToolRuntime(invocation=InvocationState())

        result = await definition.handler({}, runtime)

        assert result["timestamp"].endswith("Z")
        assert "T" in result["timestamp"]

    def test_openai_format(self, registry):
        """Definitions render in function calling format."""
        formatted = registry.resolve(CURRENT_TIME_TOOL).to_openai_format()

        assert formatted["type"] == "function"
        assert formatted["function"]["name"] == CURRENT_TIME_TOOL
