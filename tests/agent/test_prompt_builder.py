"""
Unit tests for the prompt builder.
"""

from src.ollamabot.agent.domain.entities import ContextScope, ContextSnapshot, MessageRole, Turn
from src.ollamabot.agent.orchestrator.prompt_builder import PromptBuilder


def fixed_clock():
    return "2026-01-01T12:00:00.000Z"


class TestSystemPrompt:
    """Test build_system_prompt()."""

    def test_contains_facts(self):
        builder = PromptBuilder(bot_name="hubot", clock=fixed_clock)

        prompt = builder.build_system_prompt("alice")

        assert prompt.startswith("Current UTC timestamp: 2026-01-01T12:00:00.000Z")
        assert "User's Name: alice" in prompt
        assert "Bot's Name: hubot" in prompt

    def test_unknown_user(self):
        prompt = PromptBuilder(clock=fixed_clock).build_system_prompt()

        assert "User's Name: unknown-user" in prompt

    def test_custom_instruction_replaces_default(self):
        default = PromptBuilder(clock=fixed_clock).build_system_prompt("a")
        custom = PromptBuilder(custom_instruction="Answer like a pirate.", clock=fixed_clock).build_system_prompt("a")

        assert custom.endswith("Answer like a pirate.")
        assert custom != default

    def test_slack_hint(self):
        slack = PromptBuilder(adapter_name="slack", clock=fixed_clock).build_system_prompt()
        plain = PromptBuilder(adapter_name="shell", clock=fixed_clock).build_system_prompt()

        assert len(slack) > len(plain)
        assert "Slack" in slack

    def test_tool_instructions_only_with_tools(self):
        builder = PromptBuilder(clock=fixed_clock)

        assert len(builder.build_system_prompt(tools_available=True)) > len(builder.build_system_prompt())


class TestMessages:
    """Test build_messages()."""

    def test_prompt_only(self):
        messages = PromptBuilder(clock=fixed_clock).build_messages("hello")

        assert [m.role for m in messages] == [MessageRole.SYSTEM, MessageRole.USER]
        assert messages[-1].content == "hello"

    def test_turns_in_order(self):
        snapshot = ContextSnapshot(history=(Turn("q1", "a1"), Turn("q2", "a2")))

        messages = PromptBuilder(clock=fixed_clock).build_messages("q3", snapshot)

        assert [m.content for m in messages[1:]] == ["q1", "a1", "q2", "a2", "q3"]

    def test_room_scope_prefixes_display_names(self):
        snapshot = ContextSnapshot(history=(Turn("hi", "hello", {"display_name": "Bob"}),))

        messages = PromptBuilder(scope=ContextScope.ROOM, clock=fixed_clock).build_messages("q", snapshot)

        assert messages[1].content == "Bob: hi"

    def test_no_summary_message_without_summary(self):
        snapshot = ContextSnapshot(history=(Turn("q1", "a1"),))

        messages = PromptBuilder(clock=fixed_clock).build_messages("q", snapshot)

        assert sum(1 for m in messages if m.role == MessageRole.SYSTEM) == 1
