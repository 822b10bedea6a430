"""
Unit tests for the chat service.

Tests prompt cleaning and truncation, memory wiring per scope, turn
storage and user-facing error rendering.
"""

import pytest

from src.ollamabot.agent.config import BotConfig
from src.ollamabot.agent.domain.entities import ContextScope, ModelReply, RunOutcome, ToolCall
from src.ollamabot.agent.orchestrator import EMPTY_RESULTS_BAILOUT
from src.ollamabot.agent.service import EMPTY_PROMPT_REPLY, ChatService, sanitize_text
from src.ollamabot.api.exceptions import ConnectionError, ModelNotFoundError


def make_service(provider, **overrides):
    config = BotConfig(tools_enabled=False, **overrides)
    return ChatService(config, provider=provider)


class TestSanitizeText:
    """Test control character stripping."""

    def test_strips_control_characters(self):
        assert sanitize_text("he\x00llo\x1b") == "hello"

    def test_keeps_whitespace_controls(self):
        assert sanitize_text("a\tb\nc\r") == "a\tb\nc\r"

    def test_strips_format_characters(self):
        assert sanitize_text("zero​width") == "zerowidth"

    def test_keeps_non_ascii_text(self):
        assert sanitize_text("café ☕") == "café ☕"


class TestAsk:
    """Test ask()."""

    @pytest.mark.asyncio
    async def test_blank_prompt(self, scripted_provider):
        provider = scripted_provider()
        service = make_service(provider)

        response = await service.ask("  \x00 ", room="r", user="u")

        assert response.text == EMPTY_PROMPT_REPLY
        assert response.is_error
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_answer_stored_as_turn(self, scripted_provider):
        provider = scripted_provider(ModelReply(content="Four"))
        service = make_service(provider)

        response = await service.ask("2+2?", room="general", user="alice", display_name="Alice")

        assert response.text == "Four"
        assert response.outcome == RunOutcome.DIRECT
        history = service.contexts.get_history("general:alice").history
        assert history[0].user_text == "2+2?"
        assert history[0].assistant_text == "Four"
        assert history[0].user_metadata == {"display_name": "Alice"}

    @pytest.mark.asyncio
    async def test_history_reaches_next_prompt(self, scripted_provider):
        provider = scripted_provider(ModelReply(content="Paris"), ModelReply(content="About 2 million"))
        service = make_service(provider)

        await service.ask("Capital of France?", room="r", user="u")
        await service.ask("Population?", room="r", user="u")

        contents = [m.content for m in provider.calls[1]["messages"]]
        assert "Capital of France?" in contents
        assert "Paris" in contents

    @pytest.mark.asyncio
    async def test_users_isolated_in_room_user_scope(self, scripted_provider):
        provider = scripted_provider(ModelReply(content="a"), ModelReply(content="b"))
        service = make_service(provider)

        await service.ask("secret question", room="r", user="alice")
        await service.ask("other", room="r", user="bob")

        contents = [m.content for m in provider.calls[1]["messages"]]
        assert "secret question" not in contents

    @pytest.mark.asyncio
    async def test_room_scope_shares_history(self, scripted_provider):
        provider = scripted_provider(ModelReply(content="a"), ModelReply(content="b"))
        service = make_service(provider, context_scope=ContextScope.ROOM)

        await service.ask("shared question", room="r", user="alice", display_name="Alice")
        await service.ask("follow-up", room="r", user="bob")

        contents = [m.content for m in provider.calls[1]["messages"]]
        assert "Alice: shared question" in contents

    @pytest.mark.asyncio
    async def test_long_prompt_truncated_with_notice(self, scripted_provider):
        provider = scripted_provider(ModelReply(content="ok"))
        service = make_service(provider, max_prompt_chars=10)

        response = await service.ask("x" * 50, room="r", user="u")

        assert response.truncated
        assert response.notice == "Note: Your prompt exceeded 10 characters and was truncated."
        assert provider.calls[0]["messages"][-1].content == "x" * 10 + "…"

    @pytest.mark.asyncio
    async def test_transport_error_rendered(self, scripted_provider):
        provider = scripted_provider(ConnectionError())
        service = make_service(provider)

        response = await service.ask("hi", room="r", user="u")

        assert response.is_error
        assert response.text == "Error: Cannot connect to Ollama server. Please ensure Ollama is running."
        assert service.contexts.get_history("r:u").is_empty

    @pytest.mark.asyncio
    async def test_model_not_found_rendered(self, scripted_provider):
        provider = scripted_provider(ModelNotFoundError("mystery"))
        service = make_service(provider)

        response = await service.ask("hi", room="r", user="u")

        assert "ollama pull mystery" in response.text

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, scripted_provider):
        provider = scripted_provider(KeyError("internal detail"))
        service = make_service(provider)

        response = await service.ask("hi", room="r", user="u")

        assert response.text == "Error: An unexpected error occurred while communicating with Ollama."
        assert "internal detail" not in response.text

    @pytest.mark.asyncio
    async def test_bailout_not_stored(self, scripted_provider):
        provider = scripted_provider(
            ModelReply(tool_calls=[ToolCall(name="missing_tool", arguments={})]),
            ModelReply(tool_calls=[ToolCall(name="missing_tool", arguments={})]),
        )
        service = ChatService(BotConfig(), provider=provider)

        response = await service.ask("hi", room="r", user="u")

        assert response.text == EMPTY_RESULTS_BAILOUT
        assert response.outcome == RunOutcome.BAILOUT
        assert service.contexts.get_history("r:u").is_empty

    @pytest.mark.asyncio
    async def test_memory_disabled(self, scripted_provider):
        provider = scripted_provider(ModelReply(content="a"))
        service = make_service(provider, context_ttl_ms=0)

        await service.ask("hi", room="r", user="u")

        assert service.contexts.get_history("r:u").is_empty

    @pytest.mark.asyncio
    async def test_aclose_closes_provider(self, scripted_provider):
        provider = scripted_provider()
        service = make_service(provider)

        await service.aclose()

        assert provider.closed
