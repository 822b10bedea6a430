"""
Unit tests for the conversation summarizer.
"""

import pytest

from src.ollamabot.agent.domain.entities import ContextScope, MessageRole, ModelReply, Turn
from src.ollamabot.agent.memory.summarizer import ConversationSummarizer, cap_summary


TURNS = [
    Turn("What is JavaScript?", "JavaScript is a programming language.", {"display_name": "Ann"}),
    Turn("Tell me more", "It is used for web development."),
]


class TestPrompts:
    """Test prompt construction."""

    def test_first_time_prompt(self, scripted_provider):
        summarizer = ConversationSummarizer(scripted_provider())

        prompt = summarizer.build_prompt(TURNS)

        assert prompt.startswith("Summarize the following conversation turns")
        assert "User: What is JavaScript?\nAssistant: JavaScript is a programming language." in prompt
        assert "Tell me more" in prompt
        assert "<turns>" in prompt

    def test_rolling_prompt_includes_previous_summary(self, scripted_provider):
        summarizer = ConversationSummarizer(scripted_provider())

        prompt = summarizer.build_prompt(TURNS[1:], "User asked about JavaScript basics.")

        assert prompt.startswith("Previous summary:\nUser asked about JavaScript basics.")
        assert "New conversation turns:" in prompt
        assert "Produce an updated summary" in prompt

    def test_room_scope_uses_display_names(self, scripted_provider):
        summarizer = ConversationSummarizer(scripted_provider(), scope=ContextScope.ROOM)

        prompt = summarizer.build_prompt(TURNS)

        assert "User: Ann: What is JavaScript?" in prompt
        assert "User: Tell me more" in prompt

    def test_room_user_scope_ignores_display_names(self, scripted_provider):
        summarizer = ConversationSummarizer(scripted_provider())

        assert "Ann:" not in summarizer.build_prompt(TURNS)


class TestSummarize:
    """Test summarize()."""

    @pytest.mark.asyncio
    async def test_calls_model_without_tools(self, scripted_provider):
        provider = scripted_provider(ModelReply(content="  A short summary.  "))
        summarizer = ConversationSummarizer(provider, timeout_seconds=12)

        summary = await summarizer.summarize(TURNS)

        assert summary == "A short summary."
        call = provider.calls[0]
        assert call["tools"] is None
        assert call["timeout"] == 12
        assert call["messages"][0].role == MessageRole.SYSTEM
        assert call["messages"][1].role == MessageRole.USER

    @pytest.mark.asyncio
    async def test_empty_reply_returns_none(self, scripted_provider):
        summarizer = ConversationSummarizer(scripted_provider(ModelReply(content="   ")))

        assert await summarizer.summarize(TURNS) is None

    @pytest.mark.asyncio
    async def test_long_summary_is_capped(self, scripted_provider):
        summarizer = ConversationSummarizer(scripted_provider(ModelReply(content="a" * 1000)))

        summary = await summarizer.summarize(TURNS)

        assert len(summary) == 603
        assert summary.endswith("...")

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, scripted_provider):
        summarizer = ConversationSummarizer(scripted_provider(RuntimeError("down")))

        with pytest.raises(RuntimeError):
            await summarizer.summarize(TURNS)


class TestCapSummary:
    """Test the length ceiling."""

    def test_under_hard_limit_unchanged(self):
        text = "b" * 650
        assert cap_summary(text) == text

    def test_over_hard_limit_truncated_to_soft_limit(self):
        capped = cap_summary("c" * 651)
        assert capped == "c" * 600 + "..."
