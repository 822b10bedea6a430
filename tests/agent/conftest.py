"""Shared fixtures for agent tests."""

from typing import Optional

import pytest

from src.ollamabot.agent.domain.entities import Message, ModelReply, ToolDefinition
from src.ollamabot.agent.domain.ports import ILLMProvider


class ScriptedProvider(ILLMProvider):
    """Model transport that replays scripted replies and records every call."""

    def __init__(self, replies=None, tools_supported: bool = True, model: str = "test-model"):
        self.replies = list(replies or [])
        self.tools_supported = tools_supported
        self.model = model
        self.calls: list[dict] = []
        self.closed = False

    @property
    def model_name(self) -> str:
        return self.model

    async def supports_tools(self) -> bool:
        return self.tools_supported

    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        timeout: Optional[float] = None,
    ) -> ModelReply:
        self.calls.append({"messages": list(messages), "tools": tools, "timeout": timeout})
        if not self.replies:
            raise AssertionError("ScriptedProvider ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = await reply(messages, tools)
        return reply

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances."""
    def factory(*replies, tools_supported: bool = True):
        return ScriptedProvider(list(replies), tools_supported=tools_supported)
    return factory
