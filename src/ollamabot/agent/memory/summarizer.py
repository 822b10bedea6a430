"""
Conversation summarizer.

Compresses older turns into a short summary so prompts stay small while the
conversation keeps its continuity.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..domain.entities import ContextScope, Message, MessageRole, Turn
from ..domain.ports import ILLMProvider

logger = logging.getLogger(__name__)

SUMMARY_HARD_LIMIT = 650
SUMMARY_SOFT_LIMIT = 600


def cap_summary(summary: str) -> str:
    """Truncate summaries over the hard limit to the soft limit plus '...'."""
    if len(summary) > SUMMARY_HARD_LIMIT:
        return summary[:SUMMARY_SOFT_LIMIT] + "..."
    return summary


class ConversationSummarizer:
    """Builds summarization prompts and runs them against the model.

    Usage:
        summarizer = ConversationSummarizer(provider, timeout_seconds=30)
        summary = await summarizer.summarize(turns, previous_summary)
    """

    SYSTEM_PROMPT = (
        "You maintain a running summary of a chat conversation. Keep it under "
        "600 characters. Preserve names, facts, open questions and decisions; "
        "omit pleasantries."
    )

    FIRST_PROMPT = """Summarize the following conversation turns so that another assistant can continue the discussion naturally:

<turns>
{turns}
</turns>"""

    ROLLING_PROMPT = """Previous summary:
{summary}

New conversation turns:
<turns>
{turns}
</turns>

Produce an updated summary that incorporates the new information."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        timeout_seconds: Optional[float] = 30.0,
        scope: ContextScope = ContextScope.ROOM_USER,
    ):
        self.llm = llm_provider
        self.timeout_seconds = timeout_seconds
        self.scope = scope

    def _format_turns(self, turns: Sequence[Turn]) -> str:
        lines = []
        for turn in turns:
            user_text = turn.user_text
            display_name = (turn.user_metadata or {}).get("display_name")
            if self.scope == ContextScope.ROOM and display_name:
                user_text = f"{display_name}: {user_text}"
            lines.append(f"User: {user_text}\nAssistant: {turn.assistant_text}")
        return "\n\n".join(lines)

    def build_prompt(self, turns: Sequence[Turn], previous_summary: Optional[str] = None) -> str:
        """Build a first-time or rolling-update summarization prompt."""
        text = self._format_turns(turns)
        if previous_summary:
            return self.ROLLING_PROMPT.format(summary=previous_summary, turns=text)
        return self.FIRST_PROMPT.format(turns=text)

    async def summarize(
        self,
        turns: Sequence[Turn],
        previous_summary: Optional[str] = None,
    ) -> Optional[str]:
        """Summarize turns, merging into previous_summary when given.

        Args:
            turns: Turns to compress, oldest first
            previous_summary: Existing summary to update

        Returns:
            New summary, or None if the model returned nothing

        Raises:
            Transport errors from the provider (callers decide what to do)
        """
        messages = [
            Message(role=MessageRole.SYSTEM, content=self.SYSTEM_PROMPT),
            Message(role=MessageRole.USER, content=self.build_prompt(turns, previous_summary)),
        ]
        reply = await self.llm.chat(messages, tools=None, timeout=self.timeout_seconds)

        summary = (reply.content or "").strip()
        if not summary:
            logger.debug("Summarization returned empty text")
            return None
        return cap_summary(summary)
