"""
Ollama LLM Provider.

Implements the ILLMProvider interface for Ollama's chat API, locally hosted
or on ollama.com (with an API key).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from ...api.exceptions import ConnectionError, ModelNotFoundError, TimeoutError
from ...api.resilience import retry_async, with_timeout
from ..domain.entities import ErrorType, Message, ModelReply, ToolDefinition
from .base import BaseLLMProvider, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)


class OllamaProvider(BaseLLMProvider):
    """Ollama LLM provider implementation.

    Supports:
    - Locally-hosted models (llama, qwen, mistral, etc.)
    - Hosted models with bearer authentication
    - Tool/function calling (if the model supports it)

    Usage:
        config = LLMProviderConfig(
            model="llama3.2",
            base_url="http://127.0.0.1:11434",
        )
        async with OllamaProvider(config) as provider:
            reply = await provider.chat(messages, tools)
    """

    DEFAULT_MODEL = "llama3.2"
    DEFAULT_BASE_URL = "http://127.0.0.1:11434"

    def __init__(self, config: LLMProviderConfig):
        """Initialize the Ollama provider.

        Args:
            config: Provider configuration
        """
        super().__init__(config)

        self.base_url = (config.base_url or self.DEFAULT_BASE_URL).rstrip("/")

        headers = {}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.timeout,
            headers=headers,
        )
        self._tool_support: Optional[bool] = None

    async def supports_tools(self) -> bool:
        """Check the model's capabilities once and cache the answer.

        Servers that do not report capabilities, or a failed check, are
        treated as tool-capable; a model that rejects tools will surface
        that on the first chat call.
        """
        if self._tool_support is not None:
            return self._tool_support

        try:
            info = await retry_async(
                self._show,
                max_attempts=2,
                retryable_exceptions=(httpx.TransportError,),
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Capability check for {self.model_name} failed: {e}")
            return True

        capabilities = info.get("capabilities")
        if capabilities is None:
            self._tool_support = True
        else:
            self._tool_support = "tools" in capabilities
        logger.debug(f"Model {self.model_name} tool support: {self._tool_support}")
        return self._tool_support

    async def _show(self) -> dict[str, Any]:
        response = await self.client.post("/api/show", json={"model": self.model_name})
        response.raise_for_status()
        return response.json()

    async def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        timeout: Optional[float] = None,
    ) -> ModelReply:
        """Generate a non-streaming reply using Ollama.

        Args:
            messages: Full message list
            tools: Available tools (omitted from the request when empty)
            timeout: Seconds before the request is cancelled

        Returns:
            Parsed model reply
        """
        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": self._format_messages_for_api(messages),
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
            },
        }

        if self.config.max_tokens:
            payload["options"]["num_predict"] = self.config.max_tokens

        if tools:
            payload["tools"] = self._format_tools_for_api(tools)

        timeout = timeout or self.config.timeout
        logger.debug(
            f"Calling Ollama model={self.model_name} messages={len(messages)} "
            f"tools={len(tools) if tools else 0}"
        )

        try:
            response = await with_timeout(
                self.client.post, timeout, "/api/chat", json=payload
            )
            response.raise_for_status()
            data = response.json()

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TimeoutError(timeout_seconds=timeout, cause=e)

        except httpx.ConnectError as e:
            raise ConnectionError(host=self.base_url, cause=e)

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text
            if status == 404 or "not found" in body.lower():
                raise ModelNotFoundError(self.model_name, cause=e)
            logger.error(f"Ollama API error: {status} - {body[:500]}")
            raise LLMProviderError(
                f"Ollama API error (HTTP {status})",
                ErrorType.RECOVERABLE,
                e,
                details={"status_code": status, "response_body": body[:500]},
            )

        except httpx.RequestError as e:
            logger.error(f"Ollama request error: {e}")
            raise LLMProviderError(
                "Ollama request failed", ErrorType.FATAL, e, details={"error": str(e)}
            )

        except ValueError as e:
            raise LLMProviderError(
                "Malformed Ollama response", ErrorType.FATAL, e, details={"error": str(e)}
            )

        if data.get("error"):
            if "not found" in str(data["error"]).lower():
                raise ModelNotFoundError(self.model_name)
            logger.error(f"Ollama API error: {data['error']}")
            raise LLMProviderError(
                "Ollama API error", ErrorType.RECOVERABLE, details={"error": str(data["error"])[:500]}
            )

        return self._parse_reply(data)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
