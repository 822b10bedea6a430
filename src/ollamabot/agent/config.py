"""
Bot configuration.

All settings are plain scalars read once from the environment at startup.
Call load_dotenv() before BotConfig.from_env() to pick up a .env file.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from .domain.entities import ContextScope

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.2"
DEFAULT_HOST = "http://127.0.0.1:11434"
MODEL_NAME_ALLOWED = re.compile(r"^[A-Za-z0-9._:-]+$")

# Tool names used for quotas and result classification
CURRENT_TIME_TOOL = "get_current_time"
WEB_SEARCH_TOOL = "web_search"
WEB_FETCH_TOOL = "web_fetch"
RUN_PYTHON_TOOL = "run_python"

ENV_PREFIX = "OLLAMA_BOT_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_int(name: str, default: int, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    raw = _env(name)
    try:
        value = int(raw) if raw not in (None, "") else default
    except ValueError:
        logger.warning(f"Invalid integer for {ENV_PREFIX}{name}={raw!r}, using {default}")
        value = default
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def validate_model_name(raw: Optional[str]) -> str:
    """Return raw if it is a safe model name, otherwise the default model."""
    if raw and MODEL_NAME_ALLOWED.match(raw):
        return raw
    if raw:
        logger.warning(f"Ignoring invalid model name {raw!r}, using {DEFAULT_MODEL}")
    return DEFAULT_MODEL


@dataclass
class BotConfig:
    """Configuration for the chat bot.

    Attributes:
        model: Ollama model name
        host: Ollama server URL
        api_key: Optional bearer token (hosted Ollama, web tools)
        system_prompt: Optional replacement for the default instruction block
        bot_name: Name the bot introduces itself with
        adapter_name: Chat adapter name (formatting hints for e.g. Slack)
        max_prompt_chars: User prompts longer than this are truncated
        timeout_ms: Top-level timeout for one run
        context_ttl_ms: Memory lifetime since last turn (0 disables memory)
        context_turns: Raw turns kept per context key
        context_scope: room-user, room or thread
        tools_enabled: Allow the tool-calling protocol
        web_enabled: Register web search and fetch tools
        web_max_results: Search results handed to the model
        web_fetch_concurrency: Parallel page fetches
        web_max_bytes: Maximum bytes of text kept per fetched page
        web_timeout_ms: Timeout of a single page fetch
        max_tool_iterations: Model calls allowed after tool results
        tool_call_quotas: Maximum calls per tool name in one run
        summary_timeout_ms: Timeout of a background summarization call
    """

    model: str = DEFAULT_MODEL
    host: str = DEFAULT_HOST
    api_key: Optional[str] = None
    system_prompt: Optional[str] = None
    bot_name: str = "ollamabot"
    adapter_name: Optional[str] = None
    max_prompt_chars: int = 2000
    timeout_ms: int = 60000
    context_ttl_ms: int = 600000
    context_turns: int = 5
    context_scope: ContextScope = ContextScope.ROOM_USER
    tools_enabled: bool = True
    web_enabled: bool = False
    web_max_results: int = 5
    web_fetch_concurrency: int = 3
    web_max_bytes: int = 120000
    web_timeout_ms: int = 45000
    max_tool_iterations: int = 5
    tool_call_quotas: dict[str, int] = field(
        default_factory=lambda: {WEB_SEARCH_TOOL: 3, WEB_FETCH_TOOL: 5}
    )
    summary_timeout_ms: int = 30000

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def web_timeout_seconds(self) -> float:
        return self.web_timeout_ms / 1000

    @property
    def summary_timeout_seconds(self) -> float:
        return self.summary_timeout_ms / 1000

    @property
    def memory_enabled(self) -> bool:
        return self.context_ttl_ms > 0

    @property
    def web_available(self) -> bool:
        """Web tools need both the flag and an API key."""
        return self.web_enabled and bool(self.api_key)

    @classmethod
    def from_env(cls) -> BotConfig:
        """Build configuration from OLLAMA_BOT_* environment variables."""
        return cls(
            model=validate_model_name(_env("MODEL")),
            host=(_env("HOST") or DEFAULT_HOST).rstrip("/"),
            api_key=_env("API_KEY") or None,
            system_prompt=_env("SYSTEM_PROMPT") or None,
            bot_name=_env("NAME") or "ollamabot",
            adapter_name=_env("ADAPTER") or None,
            max_prompt_chars=_env_int("MAX_PROMPT_CHARS", 2000, minimum=1),
            timeout_ms=_env_int("TIMEOUT_MS", 60000, minimum=1),
            context_ttl_ms=_env_int("CONTEXT_TTL_MS", 600000, minimum=0),
            context_turns=_env_int("CONTEXT_TURNS", 5, minimum=1),
            context_scope=ContextScope.parse(_env("CONTEXT_SCOPE")),
            tools_enabled=_env_bool("TOOLS_ENABLED", True),
            web_enabled=_env_bool("WEB_ENABLED", False),
            web_max_results=_env_int("WEB_MAX_RESULTS", 5, minimum=1, maximum=10),
            web_fetch_concurrency=_env_int("WEB_FETCH_CONCURRENCY", 3, minimum=1),
            web_max_bytes=_env_int("WEB_MAX_BYTES", 120000, minimum=1024),
            web_timeout_ms=_env_int("WEB_TIMEOUT_MS", 45000, minimum=1000),
            max_tool_iterations=_env_int("MAX_TOOL_ITERATIONS", 5, minimum=1),
            tool_call_quotas={
                WEB_SEARCH_TOOL: _env_int("SEARCH_QUOTA", 3, minimum=1),
                WEB_FETCH_TOOL: _env_int("FETCH_QUOTA", 5, minimum=1),
            },
            summary_timeout_ms=_env_int("SUMMARY_TIMEOUT_MS", 30000, minimum=1000),
        )

    def __repr__(self) -> str:
        return (
            f"BotConfig("
            f"model={self.model}, "
            f"host={self.host}, "
            f"scope={self.context_scope.value}, "
            f"ttl={self.context_ttl_ms}ms, "
            f"turns={self.context_turns}, "
            f"tools={self.tools_enabled}, "
            f"web={self.web_available})"
        )
