"""
Unit tests for Ollama provider.

Tests request payloads, reply parsing, error mapping and the tool
capability check.
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from src.ollamabot.agent.domain.entities import Message, MessageRole, ToolCall, ToolDefinition
from src.ollamabot.agent.providers.base import LLMProviderConfig, LLMProviderError
from src.ollamabot.agent.providers.ollama import OllamaProvider
from src.ollamabot.api.exceptions import ConnectionError, ModelNotFoundError, TimeoutError, render_user_error


def response(status=200, body=None, path="/api/chat", text=None):
    """Build a real httpx response bound to a request."""
    request = httpx.Request("POST", f"http://localhost:11434{path}")
    if text is not None:
        return httpx.Response(status, text=text, request=request)
    return httpx.Response(status, json=body or {}, request=request)


@pytest.fixture
def ollama_config():
    """Test Ollama config."""
    return LLMProviderConfig(
        model="qwen3:4b",
        base_url="http://localhost:11434/",
        timeout=30,
    )


@pytest.fixture
def provider(ollama_config):
    provider = OllamaProvider(ollama_config)
    provider.client = AsyncMock()
    return provider


MESSAGES = [
    Message(role=MessageRole.SYSTEM, content="You are helpful"),
    Message(role=MessageRole.USER, content="Hello"),
]

CLOCK = ToolDefinition(name="get_current_time", description="Current time", handler=lambda a, r: {})


class TestOllamaProvider:
    """Tests for Ollama provider initialization."""

    def test_init(self, ollama_config):
        """Provider keeps model and strips the trailing slash."""
        provider = OllamaProvider(ollama_config)
        assert provider.model_name == "qwen3:4b"
        assert provider.base_url == "http://localhost:11434"

    def test_default_base_url(self):
        provider = OllamaProvider(LLMProviderConfig(model="llama3"))
        assert provider.base_url == OllamaProvider.DEFAULT_BASE_URL

    def test_api_key_sent_as_bearer(self):
        provider = OllamaProvider(LLMProviderConfig(model="llama3", api_key="secret"))
        assert provider.client.headers["Authorization"] == "Bearer secret"

    def test_no_auth_header_without_key(self, ollama_config):
        provider = OllamaProvider(ollama_config)
        assert "Authorization" not in provider.client.headers


class TestOllamaChat:
    """Tests for chat()."""

    @pytest.mark.asyncio
    async def test_text_reply(self, provider):
        """A plain reply is parsed into content."""
        provider.client.post.return_value = response(body={
            "model": "qwen3:4b",
            "message": {"role": "assistant", "content": "Hello world!"},
            "done": True,
        })

        reply = await provider.chat(MESSAGES)

        assert reply.content == "Hello world!"
        assert reply.tool_calls == []
        assert reply.model == "qwen3:4b"

    @pytest.mark.asyncio
    async def test_payload_is_non_streaming_without_tools(self, provider):
        """Empty tool lists are omitted from the request."""
        provider.client.post.return_value = response(body={"message": {"content": "ok"}})

        await provider.chat(MESSAGES, tools=[])

        path = provider.client.post.call_args.args[0]
        payload = provider.client.post.call_args.kwargs["json"]
        assert path == "/api/chat"
        assert payload["stream"] is False
        assert payload["model"] == "qwen3:4b"
        assert "tools" not in payload
        assert payload["messages"][0] == {"role": "system", "content": "You are helpful"}

    @pytest.mark.asyncio
    async def test_payload_includes_tools(self, provider):
        provider.client.post.return_value = response(body={"message": {"content": "ok"}})

        await provider.chat(MESSAGES, tools=[CLOCK])

        payload = provider.client.post.call_args.kwargs["json"]
        assert payload["tools"][0]["function"]["name"] == "get_current_time"
        assert payload["tools"][0]["function"]["parameters"] == {"type": "object", "properties": {}}

    @pytest.mark.asyncio
    async def test_tool_messages_formatted(self, provider):
        """Assistant tool calls and tool results use Ollama's field names."""
        provider.client.post.return_value = response(body={"message": {"content": "ok"}})
        messages = MESSAGES + [
            Message(
                role=MessageRole.ASSISTANT,
                content="",
                tool_calls=[ToolCall(name="get_current_time", arguments={})],
            ),
            Message(role=MessageRole.TOOL, content='{"timestamp": "x"}', tool_name="get_current_time"),
        ]

        await provider.chat(messages, tools=[CLOCK])

        sent = provider.client.post.call_args.kwargs["json"]["messages"]
        assert sent[2]["tool_calls"] == [{"function": {"name": "get_current_time", "arguments": {}}}]
        assert sent[3]["tool_name"] == "get_current_time"

    @pytest.mark.asyncio
    async def test_tool_call_with_dict_arguments(self, provider):
        provider.client.post.return_value = response(body={
            "message": {
                "content": "",
                "tool_calls": [{"function": {"name": "web_search", "arguments": {"query": "news"}}}],
            },
        })

        reply = await provider.chat(MESSAGES, tools=[CLOCK])

        assert reply.tool_call.name == "web_search"
        assert reply.tool_call.arguments == {"query": "news"}
        assert reply.content is None

    @pytest.mark.asyncio
    async def test_tool_call_with_string_arguments(self, provider):
        """JSON-string arguments are decoded."""
        provider.client.post.return_value = response(body={
            "message": {
                "tool_calls": [{"function": {"name": "web_fetch", "arguments": json.dumps({"url": "https://a"})}}],
            },
        })

        reply = await provider.chat(MESSAGES, tools=[CLOCK])

        assert reply.tool_call.arguments == {"url": "https://a"}

    @pytest.mark.asyncio
    async def test_unparseable_arguments_become_empty(self, provider):
        provider.client.post.return_value = response(body={
            "message": {"tool_calls": [{"function": {"name": "web_fetch", "arguments": "{not json"}}]},
        })

        reply = await provider.chat(MESSAGES, tools=[CLOCK])

        assert reply.tool_call.arguments == {}

    @pytest.mark.asyncio
    async def test_nameless_tool_call_parsed(self, provider):
        """Calls without a name are kept with an empty name."""
        provider.client.post.return_value = response(body={
            "message": {"tool_calls": [{"function": {"arguments": {"type": "web_search"}}}]},
        })

        reply = await provider.chat(MESSAGES, tools=[CLOCK])

        assert reply.tool_call.name == ""
        assert reply.tool_call.arguments == {"type": "web_search"}


class TestOllamaErrors:
    """Tests for transport error mapping."""

    @pytest.mark.asyncio
    async def test_404_is_model_not_found(self, provider):
        provider.client.post.return_value = response(404, text='{"error": "model not found"}')

        with pytest.raises(ModelNotFoundError) as exc_info:
            await provider.chat(MESSAGES)

        assert "ollama pull qwen3:4b" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_error_field_not_found(self, provider):
        provider.client.post.return_value = response(body={"error": "model 'qwen3:4b' not found"})

        with pytest.raises(ModelNotFoundError):
            await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_connect_error(self, provider):
        provider.client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(ConnectionError) as exc_info:
            await provider.chat(MESSAGES)

        assert "Cannot connect to Ollama server" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_http_timeout(self, provider):
        provider.client.post.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(TimeoutError) as exc_info:
            await provider.chat(MESSAGES, timeout=12)

        assert "timed out after 12000 ms" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_server_error(self, provider):
        provider.client.post.return_value = response(500, text="internal error")

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.chat(MESSAGES)

        assert exc_info.value.recoverable

    @pytest.mark.asyncio
    async def test_server_error_body_kept_out_of_message(self, provider):
        """The raw response body goes to details, not to the user-facing message."""
        provider.client.post.return_value = response(500, text="Traceback: secret stack trace at /srv/ollama")

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.chat(MESSAGES)

        error = exc_info.value
        assert render_user_error(error) == "Error: Ollama API error (HTTP 500)"
        assert "secret" not in error.message
        assert error.details["status_code"] == 500
        assert "secret stack trace" in error.details["response_body"]

    @pytest.mark.asyncio
    async def test_error_field_kept_out_of_message(self, provider):
        provider.client.post.return_value = response(body={"error": "llama runner crashed: /tmp/internal.sock"})

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.chat(MESSAGES)

        assert "internal.sock" not in render_user_error(exc_info.value)
        assert "internal.sock" in exc_info.value.details["error"]


class TestToolSupportCheck:
    """Tests for supports_tools()."""

    @pytest.mark.asyncio
    async def test_capabilities_with_tools(self, provider):
        provider.client.post.return_value = response(body={"capabilities": ["completion", "tools"]}, path="/api/show")

        assert await provider.supports_tools() is True

    @pytest.mark.asyncio
    async def test_capabilities_without_tools(self, provider):
        provider.client.post.return_value = response(body={"capabilities": ["completion"]}, path="/api/show")

        assert await provider.supports_tools() is False

    @pytest.mark.asyncio
    async def test_result_is_cached(self, provider):
        provider.client.post.return_value = response(body={"capabilities": ["completion"]}, path="/api/show")

        await provider.supports_tools()
        await provider.supports_tools()

        assert provider.client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_capabilities_assumes_tools(self, provider):
        provider.client.post.return_value = response(body={"details": {}}, path="/api/show")

        assert await provider.supports_tools() is True

    @pytest.mark.asyncio
    async def test_failed_check_assumes_tools(self, provider):
        """A failing check is not cached and reports tool support."""
        provider.client.post.return_value = response(500, text="boom", path="/api/show")

        assert await provider.supports_tools() is True
        assert provider._tool_support is None

    @pytest.mark.asyncio
    async def test_aclose(self, provider):
        await provider.aclose()

        provider.client.aclose.assert_awaited_once()
