#!/usr/bin/env python3
"""HTTP Client for the hosted Ollama web search and web fetch APIs.

This client knows HOW to talk to the web endpoints, not WHEN to call them.
Deciding what to search and which pages to read belongs to the model, and
batching and deduplication belong to the FetchCoordinator.

Usage:
    async with OllamaWebClient(api_key) as client:
        results = await client.search("python 3.13 release date", max_results=5)
        text = await client.fetch(results[0]["url"])
"""
import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .exceptions import (
    APIError,
    ConfigurationError,
    ConnectionError,
    NetworkError,
    TimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_WEB_BASE_URL = "https://ollama.com"


class OllamaWebClient:
    """Async HTTP client for web search and page fetch.

    The client owns one aiohttp session, created lazily or in __aenter__
    and closed by close() / __aexit__.

    Attributes:
        api_key: Bearer token for the hosted API
        base_url: API base URL
        timeout: Default per-request timeout in seconds
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_WEB_BASE_URL,
        timeout: float = 45.0,
    ):
        if not api_key:
            raise ConfigurationError(
                "An API key is required for web search and fetch.",
                key="OLLAMA_BOT_API_KEY",
            )
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    # ----------------------------------------
    # Context Manager Protocol
    # ----------------------------------------

    async def __aenter__(self) -> "OllamaWebClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=10, limit_per_host=10),
                timeout=aiohttp.ClientTimeout(total=self.timeout, connect=10),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    # ----------------------------------------
    # Low-Level Request
    # ----------------------------------------

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and return the parsed JSON body.

        Raises:
            APIError: If response status is not 2xx
            ConnectionError: If connection to server fails
            TimeoutError: If request times out
        """
        session = self._ensure_session()
        url = f"{self.base_url}{endpoint}"

        try:
            async with session.post(url, json=payload) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise APIError(
                        f"Web API error ({response.status}) for {endpoint}",
                        status_code=response.status,
                        endpoint=endpoint,
                        response_body=body,
                    )
                return await response.json()

        except aiohttp.ClientConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to {self.base_url}",
                host=self.base_url,
                cause=e,
            )

        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"Request to {endpoint} timed out",
                timeout_seconds=self.timeout,
                cause=e,
            )

        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Network error during POST {endpoint}: {e}",
                cause=e,
            )

    # ----------------------------------------
    # Web Operations
    # ----------------------------------------

    async def search(self, query: str, max_results: int = 5) -> list[dict[str, str]]:
        """Search the web.

        Results are deduplicated by URL (first occurrence wins) and capped
        at max_results.

        Args:
            query: Search query
            max_results: Maximum results to return

        Returns:
            List of {"title", "url", "snippet"} dicts
        """
        data = await self._post(
            "/api/web_search",
            {"query": query, "max_results": max_results},
        )

        seen: set[str] = set()
        results: list[dict[str, str]] = []
        for item in (data or {}).get("results") or []:
            url = item.get("url") or item.get("link") or item.get("href")
            if not url or url in seen:
                continue
            seen.add(url)
            results.append({
                "title": item.get("title") or item.get("name") or url,
                "url": url,
                "snippet": item.get("content") or item.get("snippet") or item.get("description") or "",
            })

        logger.debug(f"Web search returned {len(results)} unique result(s) for {query!r}")
        return results[:max_results]

    async def fetch(self, url: str) -> str:
        """Fetch the readable text of a page.

        Args:
            url: Page URL

        Returns:
            Page text (may be empty)
        """
        data = await self._post("/api/web_fetch", {"url": url}) or {}
        for field_name in ("content", "text", "body", "data"):
            value = data.get(field_name)
            if value:
                return str(value)
        return ""
