"""
Web search and web fetch tools.

Search returns result metadata only (title, url, snippet). Reading pages is a
separate tool so the model decides which URLs are worth fetching.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from ...api.exceptions import BotError, ToolExecutionError
from ...api.ollama_web import OllamaWebClient
from ..config import WEB_FETCH_TOOL, WEB_SEARCH_TOOL, BotConfig
from ..domain.entities import ToolDefinition, ToolRuntime
from .fetch_coordinator import FetchCoordinator, FetchRequest

logger = logging.getLogger(__name__)


def _hostname(url: str) -> str:
    return urlparse(url).hostname or url


def _requested_urls(arguments: dict[str, Any]) -> list[str]:
    """Accept both 'urls' (list or string) and 'url' (string or list)."""
    raw = arguments.get("urls")
    if raw is None:
        raw = arguments.get("url")
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    return [str(u).strip() for u in raw if u and str(u).strip()]


class WebTools:
    """Handlers for the web_search and web_fetch tools.

    Usage:
        web = WebTools(web_client, config)
        registry.register(WEB_SEARCH_TOOL, web.search_definition())
        registry.register(WEB_FETCH_TOOL, web.fetch_definition())
    """

    def __init__(self, client: OllamaWebClient, config: BotConfig):
        self.client = client
        self.config = config
        self.coordinator = FetchCoordinator(
            client.fetch,
            max_bytes=config.web_max_bytes,
            concurrency=config.web_fetch_concurrency,
            timeout_seconds=config.web_timeout_seconds,
        )

    async def search(self, arguments: dict[str, Any], runtime: ToolRuntime) -> dict[str, Any]:
        """Run a web search and return result metadata."""
        query = str(arguments.get("query") or arguments.get("prompt") or "").strip()
        if not query:
            raise ToolExecutionError("No search query provided", tool_name=WEB_SEARCH_TOOL)

        await runtime.send_status("Searching the web for relevant sources...")
        logger.debug(f"Web search query: {query!r}")

        try:
            results = await self.client.search(query, self.config.web_max_results)
        except BotError as e:
            raise ToolExecutionError(
                f"Web search failed: {e.message}", tool_name=WEB_SEARCH_TOOL, cause=e
            )

        for result in results:
            runtime.invocation.search_results.setdefault(result["url"], result)
        return {"results": results}

    async def fetch(self, arguments: dict[str, Any], runtime: ToolRuntime) -> dict[str, Any]:
        """Fetch pages the model selected, skipping URLs already read this run."""
        urls = _requested_urls(arguments)
        if not urls:
            raise ToolExecutionError("No URLs provided for fetching", tool_name=WEB_FETCH_TOOL)

        known = runtime.invocation.search_results
        requests = [
            FetchRequest(
                url=url,
                title=known.get(url, {}).get("title"),
                snippet=known.get(url, {}).get("snippet") or None,
            )
            for url in urls
        ]

        fetched_urls = runtime.invocation.fetched_urls
        new_urls = [url for url in dict.fromkeys(urls) if url not in fetched_urls]
        if new_urls:
            domains = ", ".join(_hostname(url) for url in new_urls)
            await runtime.send_status(f"Fetching content from {len(new_urls)} URL(s): {domains}")

        pages = await self.coordinator.fetch_new(requests, fetched_urls)
        if not pages:
            raise ToolExecutionError(
                "Could not fetch any of the requested URLs", tool_name=WEB_FETCH_TOOL
            )

        return {
            "pages": [
                {"url": page.url, "title": page.title, "content": page.text}
                for page in pages
            ]
        }

    def search_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=WEB_SEARCH_TOOL,
            description=(
                "Search the web for relevant information. Returns search result "
                "metadata only (title, url, snippet)."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query to look up on the web",
                    },
                },
                "required": ["query"],
            },
            handler=self.search,
            timeout_seconds=self.config.web_timeout_seconds,
        )

    def fetch_definition(self) -> ToolDefinition:
        # The coordinator bounds each page; the whole batch may take a few rounds
        return ToolDefinition(
            name=WEB_FETCH_TOOL,
            description="Fetch full content from specific URLs to get detailed information",
            parameters={
                "type": "object",
                "properties": {
                    "urls": {
                        "type": "array",
                        "description": "Array of URLs to fetch content from",
                        "items": {"type": "string"},
                    },
                },
                "required": ["urls"],
            },
            handler=self.fetch,
            timeout_seconds=None,
        )
