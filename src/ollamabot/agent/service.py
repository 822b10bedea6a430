"""
Chat Service.

The caller side of the orchestrator: cleans the prompt, looks up memory,
runs the protocol, stores the turn and renders errors for the user. Chat
adapters and the CLI talk to this class only.
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..api.exceptions import BotError, render_user_error
from ..api.ollama_web import OllamaWebClient
from .config import BotConfig
from .domain.entities import RunOutcome
from .domain.ports import ILLMProvider
from .memory import ContextStore, ConversationSummarizer, build_context_key
from .orchestrator import AgentOrchestrator, OrchestratorConfig, PromptBuilder
from .providers import LLMProviderConfig, OllamaProvider
from .tools import ToolRegistry, create_default_registry

logger = logging.getLogger(__name__)

EMPTY_PROMPT_REPLY = "Please provide a question or prompt."
KEPT_CONTROL_CHARS = {"\t", "\n", "\r"}


def sanitize_text(text: Optional[str]) -> str:
    """Strip control characters except tab, newline and carriage return."""
    return "".join(
        ch for ch in (text or "")
        if ch in KEPT_CONTROL_CHARS or unicodedata.category(ch) not in ("Cc", "Cf")
    )


@dataclass
class ChatResponse:
    """What the bot says back for one prompt.

    Attributes:
        text: Answer, bail-out apology or rendered error
        truncated: True if the prompt was cut to the configured limit
        outcome: How the run terminated (None on error)
        is_error: True if text is a rendered error
        notice: Extra line to show after the answer (truncation note)
    """

    text: str
    truncated: bool = False
    outcome: Optional[RunOutcome] = None
    is_error: bool = False
    notice: Optional[str] = None


class ChatService:
    """Entry point for chat adapters.

    Usage:
        config = BotConfig.from_env()
        service = ChatService(config)
        try:
            response = await service.ask("what time is it?", room="general", user="alice")
            print(response.text)
        finally:
            await service.aclose()
    """

    def __init__(
        self,
        config: BotConfig,
        provider: Optional[ILLMProvider] = None,
        registry: Optional[ToolRegistry] = None,
        contexts: Optional[ContextStore] = None,
        web_client: Optional[OllamaWebClient] = None,
    ):
        """Wire the bot from configuration; any collaborator may be injected.

        Args:
            config: Bot configuration
            provider: Model transport (Ollama over HTTP by default)
            registry: Tool registry (default tool set by default)
            contexts: Conversation memory (in-process by default)
            web_client: Client for web tools (created when web is available)
        """
        self.config = config
        self.provider = provider or OllamaProvider(
            LLMProviderConfig(
                model=config.model,
                api_key=config.api_key,
                base_url=config.host,
                timeout=config.timeout_seconds,
            )
        )

        if web_client is None and registry is None and config.tools_enabled and config.web_available:
            web_client = OllamaWebClient(config.api_key, timeout=config.web_timeout_seconds)
        self.web_client = web_client

        self.registry = registry if registry is not None else create_default_registry(config, web_client)
        self.contexts = contexts or ContextStore(
            summarizer=ConversationSummarizer(
                self.provider,
                timeout_seconds=config.summary_timeout_seconds,
                scope=config.context_scope,
            ),
            ttl_ms=config.context_ttl_ms,
            max_turns=config.context_turns,
        )
        self.orchestrator = AgentOrchestrator(
            llm_provider=self.provider,
            tool_registry=self.registry,
            prompt_builder=PromptBuilder(
                bot_name=config.bot_name,
                adapter_name=config.adapter_name,
                custom_instruction=config.system_prompt,
                scope=config.context_scope,
            ),
            config=OrchestratorConfig.from_bot_config(config),
        )
        logger.info(f"Chat service ready: {config!r}")

    def _prepare_prompt(self, prompt: str) -> tuple[str, bool]:
        cleaned = sanitize_text(prompt).strip()
        limit = self.config.max_prompt_chars
        if len(cleaned) > limit:
            return f"{cleaned[:limit]}…", True
        return cleaned, False

    async def ask(
        self,
        prompt: str,
        room: str,
        user: str,
        thread: Optional[str] = None,
        display_name: Optional[str] = None,
        notify: Optional[Callable[[str], Awaitable[None]]] = None,
    ) -> ChatResponse:
        """Answer one prompt from a chat user.

        Never raises for transport or protocol failures; they come back as
        an error response with a short user-facing message.

        Args:
            prompt: Raw user text
            room: Room/channel identifier
            user: User identifier
            thread: Thread identifier (thread scope only)
            display_name: Name shown to the model and stored with the turn
            notify: Async callback for status lines while tools run

        Returns:
            ChatResponse
        """
        if not prompt or not sanitize_text(prompt).strip():
            return ChatResponse(text=EMPTY_PROMPT_REPLY, is_error=True)

        cleaned, truncated = self._prepare_prompt(prompt)
        key = build_context_key(self.config.context_scope, room, user, thread)
        snapshot = self.contexts.get_history(key)
        logger.debug(
            f"Prompt for key={key} chars={len(cleaned)} truncated={truncated} "
            f"history={len(snapshot.history)} summary={bool(snapshot.summary)}"
        )

        try:
            result = await self.orchestrator.run(
                cleaned,
                snapshot=snapshot,
                user_name=display_name or user,
                context_key=key,
                notify=notify,
            )
        except BotError as e:
            logger.warning(f"Run failed for key={key}: {e}")
            return ChatResponse(text=render_user_error(e), truncated=truncated, is_error=True)
        except Exception as e:
            logger.exception(f"Unexpected error for key={key}")
            return ChatResponse(text=render_user_error(e), truncated=truncated, is_error=True)

        if not result.is_bailout:
            metadata = {"display_name": display_name} if display_name else None
            self.contexts.store_turn(key, cleaned, result.text, metadata)

        notice = None
        if truncated:
            notice = (
                f"Note: Your prompt exceeded {self.config.max_prompt_chars} "
                f"characters and was truncated."
            )
        return ChatResponse(
            text=result.text,
            truncated=truncated,
            outcome=result.outcome,
            notice=notice,
        )

    async def aclose(self) -> None:
        """Wait for background summarization and close HTTP clients."""
        await self.contexts.wait_for_pending()
        await self.provider.aclose()
        if self.web_client is not None:
            await self.web_client.close()
