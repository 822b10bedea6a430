"""Default tool set for a configured bot."""

from __future__ import annotations

import logging
from typing import Optional

from ...api.ollama_web import OllamaWebClient
from ..config import BotConfig
from .python_eval import run_python_tool
from .registry import ToolRegistry
from .web import WebTools

logger = logging.getLogger(__name__)


def create_default_registry(
    config: BotConfig,
    web_client: Optional[OllamaWebClient] = None,
) -> ToolRegistry:
    """Build a fresh registry for one bot.

    The clock tool is always present. run_python is added when tools are
    enabled; web tools only when web access is enabled, an API key is
    configured and a web client is supplied.

    Args:
        config: Bot configuration
        web_client: Client for the hosted web API

    Returns:
        New ToolRegistry instance
    """
    registry = ToolRegistry()
    if not config.tools_enabled:
        return registry

    definition = run_python_tool()
    registry.register(definition.name, definition)

    if config.web_available and web_client is not None:
        web = WebTools(web_client, config)
        for definition in (web.search_definition(), web.fetch_definition()):
            registry.register(definition.name, definition)
    elif config.web_enabled:
        logger.warning("Web tools enabled without an API key or web client; skipping web tools")

    logger.info(f"Tool registry ready with {len(registry)} tool(s)")
    return registry
