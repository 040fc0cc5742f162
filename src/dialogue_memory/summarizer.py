"""Rolling conversation summaries."""

from __future__ import annotations

from typing import Protocol, Sequence

from .models import Interaction

TOPIC_PREVIEW_CHARS = 30


class Summarizer(Protocol):
    def summarize(self, interactions: Sequence[Interaction]) -> str: ...


class HeuristicSummarizer:
    """Summarizes by turn count and the opening of the latest user input.

    A placeholder for an LLM-backed summarizer. Anything implementing
    :class:`Summarizer` can be passed to the memory manager instead.
    """

    def summarize(self, interactions: Sequence[Interaction]) -> str:
        if not interactions:
            return ""
        last_input = interactions[-1].input
        return (
            f"Conversation included {len(interactions)} turns. "
            f"Most recent topic: {last_input[:TOPIC_PREVIEW_CHARS]}..."
        )
