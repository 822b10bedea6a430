#!/usr/bin/env python3
"""Resilience Patterns for model and web calls.

This module provides the small set of patterns the bot relies on:
    - Retry with exponential backoff (idempotent reads only)
    - Timeouts that cancel the in-flight call
    - A bounded worker pool with a shared cursor

Example:
    # Bound a model call
    reply = await with_timeout(provider.chat, 60.0, messages)

    # Fetch many pages, at most 3 at a time
    results = await run_worker_pool(urls, fetch_one, concurrency=3)
"""
import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================
# Retry with Exponential Backoff
# ============================================

# Default exceptions that are considered retryable
DEFAULT_RETRYABLE_EXCEPTIONS = (
    NetworkError,
    asyncio.TimeoutError,
    ConnectionResetError,
)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    retryable_exceptions: tuple = DEFAULT_RETRYABLE_EXCEPTIONS,
    **kwargs,
) -> T:
    """Retry an async function call with exponential backoff.

    Args:
        func: Async function to call
        *args: Arguments to pass to func
        max_attempts: Maximum attempts
        backoff_factor: Delay multiplier
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        retryable_exceptions: Exceptions to retry on
        **kwargs: Keyword arguments to pass to func

    Returns:
        Result from func
    """
    last_exception: Optional[Exception] = None
    delay = initial_delay

    for attempt in range(1, max_attempts + 1):
        try:
            return await func(*args, **kwargs)

        except retryable_exceptions as e:
            last_exception = e

            if attempt < max_attempts:
                actual_delay = min(delay * (0.5 + random.random()), max_delay)
                logger.warning(
                    f"Retry {attempt}/{max_attempts}: {e}. Waiting {actual_delay:.1f}s"
                )
                await asyncio.sleep(actual_delay)
                delay = min(delay * backoff_factor, max_delay)
            else:
                raise

    if last_exception:
        raise last_exception
    raise RuntimeError("Retry logic error")


# ============================================
# Timeouts
# ============================================

async def with_timeout(
    func: Callable[..., Awaitable[T]],
    timeout_seconds: Optional[float],
    *args,
    **kwargs,
) -> T:
    """Execute async function with timeout.

    On expiry the awaited call is cancelled and asyncio.TimeoutError is
    raised. A timeout of None or 0 means no limit.

    Args:
        func: Async function to execute
        timeout_seconds: Maximum execution time in seconds
        *args: Arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result from func

    Raises:
        asyncio.TimeoutError: If the call did not finish in time
    """
    if not timeout_seconds:
        return await func(*args, **kwargs)
    return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)


# ============================================
# Bounded Worker Pool
# ============================================

async def run_worker_pool(
    items: list[T],
    worker: Callable[[int, T], Awaitable[Any]],
    concurrency: int,
) -> list[Any]:
    """Process items with a fixed number of workers pulling from a shared cursor.

    min(concurrency, len(items)) workers are started. Each one repeatedly
    claims the next unprocessed index and awaits worker(index, item), so no
    index is processed twice. Results are returned in input order; a worker
    exception is stored in place of the result instead of stopping the pool.

    Args:
        items: Items to process
        worker: Async callable receiving (index, item)
        concurrency: Maximum workers running at once

    Returns:
        List of results (or exceptions) aligned with items
    """
    if not items:
        return []

    results: list[Any] = [None] * len(items)
    cursor = 0

    async def run_worker(worker_id: int) -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            try:
                results[index] = await worker(index, items[index])
            except Exception as e:
                logger.debug(f"Worker {worker_id} failed on item {index}: {e}")
                results[index] = e

    pool_size = max(1, min(concurrency, len(items)))
    await asyncio.gather(*(run_worker(i) for i in range(pool_size)))
    return results
