"""Conversation memory for the chat bot.

Provides:
- ContextStore with TTL expiry and turn retention
- Background summarization of older turns
- In-process key-value storage
"""

from .context_store import KEEP_RAW_TURNS, ContextStore, build_context_key
from .store import InMemoryKeyValueStore
from .summarizer import ConversationSummarizer, cap_summary

__all__ = [
    "KEEP_RAW_TURNS",
    "ContextStore",
    "build_context_key",
    "InMemoryKeyValueStore",
    "ConversationSummarizer",
    "cap_summary",
]
