"""
Fetch Coordinator.

Fetches a batch of pages with a bounded worker pool. A page that fails or
times out is replaced by its search snippet when one is known, otherwise it
is dropped from the batch; one bad URL never fails the whole batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

from ...api.exceptions import DuplicateFetchError
from ...api.resilience import run_worker_pool, with_timeout

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."

PageFetcher = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class FetchRequest:
    """One URL to fetch, with an optional snippet to fall back on."""

    url: str
    title: Optional[str] = None
    snippet: Optional[str] = None


@dataclass(frozen=True)
class FetchedPage:
    """Text obtained for one request.

    Attributes:
        url: Requested URL
        title: Page title from the search result, or the URL when unknown
        text: Page text, truncated to the byte limit
        from_fallback: True if text is the snippet rather than the page
    """

    url: str
    title: str
    text: str
    from_fallback: bool = False


def truncate_bytes(text: str, max_bytes: int) -> str:
    """Cut text to at most max_bytes of UTF-8, marking the cut."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    keep = max(0, max_bytes - len(TRUNCATION_MARKER))
    return encoded[:keep].decode("utf-8", errors="ignore") + TRUNCATION_MARKER


def partition_new_urls(urls: Iterable[str], fetched_urls: set[str]) -> list[str]:
    """Return the URLs not yet fetched in this invocation, in request order.

    Repeated URLs within the request are collapsed.

    Raises:
        DuplicateFetchError: If every requested URL was already fetched
    """
    to_fetch: list[str] = []
    already_fetched: list[str] = []
    for url in urls:
        if url in fetched_urls:
            if url not in already_fetched:
                already_fetched.append(url)
        elif url not in to_fetch:
            to_fetch.append(url)

    if already_fetched:
        logger.debug(f"Skipping {len(already_fetched)} already-fetched URL(s)")
    if not to_fetch and already_fetched:
        raise DuplicateFetchError(already_fetched)
    return to_fetch


class FetchCoordinator:
    """Bounded-concurrency page fetching with snippet fallback.

    Usage:
        coordinator = FetchCoordinator(web_client.fetch, max_bytes=120000,
                                       concurrency=3, timeout_seconds=45)
        pages = await coordinator.fetch_many(requests)

        # With per-invocation dedup
        pages = await coordinator.fetch_new(requests, runtime.invocation.fetched_urls)
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        max_bytes: int = 120000,
        concurrency: int = 3,
        timeout_seconds: Optional[float] = 45.0,
    ):
        self.fetcher = fetcher
        self.max_bytes = max_bytes
        self.concurrency = concurrency
        self.timeout_seconds = timeout_seconds

    async def fetch_many(
        self,
        requests: list[FetchRequest],
        max_bytes: Optional[int] = None,
        concurrency: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> list[FetchedPage]:
        """Fetch every request, returning pages in request order.

        Args:
            requests: Items to fetch
            max_bytes: Byte limit per page (defaults to the coordinator's)
            concurrency: Worker count (defaults to the coordinator's)
            timeout_seconds: Per-item timeout (defaults to the coordinator's)

        Returns:
            One page per request that succeeded or had a snippet
        """
        max_bytes = max_bytes or self.max_bytes
        concurrency = concurrency or self.concurrency
        timeout_seconds = timeout_seconds if timeout_seconds is not None else self.timeout_seconds

        async def fetch_one(index: int, request: FetchRequest) -> Optional[FetchedPage]:
            try:
                text = await with_timeout(self.fetcher, timeout_seconds, request.url)
                if not text or not text.strip():
                    raise ValueError("empty page")
                return FetchedPage(
                    url=request.url,
                    title=request.title or request.url,
                    text=truncate_bytes(text, max_bytes),
                )
            except Exception as e:
                if request.snippet:
                    logger.warning(f"Fetch failed for {request.url} ({e!r}); using snippet")
                    return FetchedPage(
                        url=request.url,
                        title=request.title or request.url,
                        text=truncate_bytes(request.snippet, max_bytes),
                        from_fallback=True,
                    )
                logger.error(f"Fetch failed for {request.url}: {e!r}")
                return None

        results = await run_worker_pool(requests, fetch_one, concurrency)
        pages = [page for page in results if isinstance(page, FetchedPage)]
        logger.debug(f"Fetched {len(pages)}/{len(requests)} page(s)")
        return pages

    async def fetch_new(
        self,
        requests: list[FetchRequest],
        fetched_urls: set[str],
    ) -> list[FetchedPage]:
        """Fetch only URLs not already in fetched_urls, then record them.

        Pages built from a fallback snippet are not recorded, so the real
        page may still be requested later in the same invocation.

        Raises:
            DuplicateFetchError: If every URL was already fetched (no network call)
        """
        to_fetch = partition_new_urls((r.url for r in requests), fetched_urls)
        by_url: dict[str, FetchRequest] = {}
        for request in requests:
            by_url.setdefault(request.url, request)
        pages = await self.fetch_many([by_url[url] for url in to_fetch])
        for page in pages:
            if not page.from_fallback:
                fetched_urls.add(page.url)
        return pages
