"""Per-invocation state lifecycle."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from ..domain.entities import InvocationState

logger = logging.getLogger(__name__)


@contextmanager
def invocation_scope() -> Iterator[InvocationState]:
    """Create the state for one run and release it on every exit path.

    Usage:
        with invocation_scope() as invocation:
            ...  # fetched URLs are forgotten when the block exits
    """
    invocation = InvocationState()
    logger.debug(f"Invocation {invocation.invocation_id} started")
    try:
        yield invocation
    finally:
        invocation.fetched_urls.clear()
        invocation.search_results.clear()
        logger.debug(
            f"Invocation {invocation.invocation_id} finished; "
            f"tool calls={invocation.tool_call_counts}"
        )
