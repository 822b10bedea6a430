"""
Context Store.

Keyed conversation memory with TTL expiry, a retention cap on raw turns and
background summarization of older turns.

Architecture:
    - One ConversationContext per context key, kept in an IKeyValueStore
    - A context older than the TTL is dropped on the next read
    - Storing a turn never waits for summarization; a background task
      compresses all but the last KEEP_RAW_TURNS turns into the summary
    - At most one summarization runs per key at a time
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from ..domain.entities import ContextScope, ContextSnapshot, ConversationContext, Turn
from ..domain.ports import IKeyValueStore
from .store import InMemoryKeyValueStore
from .summarizer import ConversationSummarizer

logger = logging.getLogger(__name__)

KEEP_RAW_TURNS = 2
MIN_TURNS_TO_SUMMARIZE = 2


def build_context_key(
    scope: ContextScope,
    room: str,
    user: str,
    thread: Optional[str] = None,
) -> str:
    """Derive the memory key for a message.

    room-user: "<room>:<user>", room: "<room>", thread: "<room>#<thread>"
    (falls back to the room key when there is no thread).
    """
    if scope == ContextScope.ROOM:
        return room
    if scope == ContextScope.THREAD:
        return f"{room}#{thread}" if thread else room
    return f"{room}:{user}"


class ContextStore:
    """Conversation memory shared by all runs of one bot.

    Usage:
        contexts = ContextStore(summarizer=summarizer, ttl_ms=600000, max_turns=5)

        snapshot = contexts.get_history(key)
        ...
        contexts.store_turn(key, prompt, answer, {"display_name": "Ann"})

        # On shutdown
        await contexts.wait_for_pending()
    """

    def __init__(
        self,
        store: Optional[IKeyValueStore] = None,
        summarizer: Optional[ConversationSummarizer] = None,
        ttl_ms: int = 600000,
        max_turns: int = 5,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the context store.

        Args:
            store: Backing key-value store (in-memory by default)
            summarizer: Summarizer for older turns (None disables summarization)
            ttl_ms: Lifetime since the last turn; 0 disables memory entirely
            max_turns: Raw turns kept per key
            clock: Time source in epoch seconds
        """
        self.store = store or InMemoryKeyValueStore()
        self.summarizer = summarizer
        self.ttl_ms = ttl_ms
        self.max_turns = max(1, max_turns)
        self.clock = clock
        self._summarizing: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self.ttl_ms > 0

    def _is_expired(self, context: ConversationContext) -> bool:
        return (self.clock() - context.last_updated) * 1000 > self.ttl_ms

    def _load(self, key: str) -> Optional[ConversationContext]:
        """Return the live context for key, deleting it if expired."""
        context = self.store.get(key)
        if context is None:
            return None
        if self._is_expired(context):
            logger.debug(f"Context {key} expired; discarding")
            self.store.delete(key)
            return None
        return context

    def get_history(self, key: str) -> ContextSnapshot:
        """Return retained turns and summary for key (empty if none or expired)."""
        if not self.enabled:
            return ContextSnapshot()
        context = self._load(key)
        if context is None:
            return ContextSnapshot()
        return ContextSnapshot(history=tuple(context.history), summary=context.summary)

    def store_turn(
        self,
        key: str,
        user_text: str,
        assistant_text: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """Append a turn and schedule summarization when history grows.

        Returns immediately; summarization runs as a background task on the
        current event loop.
        """
        if not self.enabled:
            return

        context = self._load(key)
        if context is None:
            context = ConversationContext(key=key)

        now = self.clock()
        context.history.append(
            Turn(
                user_text=user_text,
                assistant_text=assistant_text,
                user_metadata=dict(metadata) if metadata else None,
                created_at=now,
            )
        )
        if len(context.history) > self.max_turns:
            del context.history[: len(context.history) - self.max_turns]
        context.last_updated = now
        self.store.set(key, context)

        if len(context.history) > KEEP_RAW_TURNS:
            self._schedule_summarization(key)

    def clear(self, key: str) -> None:
        """Forget everything stored for key."""
        self.store.delete(key)

    def _schedule_summarization(self, key: str) -> None:
        if self.summarizer is None or key in self._summarizing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop; skipping summarization for {key}")
            return

        self._summarizing.add(key)
        task = loop.create_task(self._summarize(key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _summarize(self, key: str) -> None:
        """Compress all but the newest turns of key into its summary.

        The caller marks key as summarizing; the mark is released here.
        """
        try:
            context = self._load(key)
            if context is None or len(context.history) <= KEEP_RAW_TURNS:
                return

            to_summarize = list(context.history[:-KEEP_RAW_TURNS])
            if len(to_summarize) < MIN_TURNS_TO_SUMMARIZE:
                return

            logger.debug(f"Summarizing {len(to_summarize)} turn(s) for {key}")
            summary = await self.summarizer.summarize(to_summarize, context.summary)
            if not summary:
                return

            current = self._load(key)
            if current is not context:
                logger.debug(f"Context {key} changed during summarization; discarding summary")
                return

            summarized = {id(turn) for turn in to_summarize}
            context.history = [t for t in context.history if id(t) not in summarized]
            context.summary = summary
            context.summarized_until = self.clock()
            self.store.set(key, context)
            logger.debug(f"Context {key} summarized; {len(context.history)} raw turn(s) kept")

        except Exception as e:
            logger.warning(f"Summarization failed for {key}: {e}")
        finally:
            self._summarizing.discard(key)

    async def wait_for_pending(self) -> None:
        """Wait until all scheduled summarizations have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
