"""Token estimation used for budget management."""

from __future__ import annotations

import math
from typing import Callable

from .models import Interaction, MemoryContext

TokenEstimator = Callable[[str], int]

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str | None) -> int:
    """Approximate token count: one token per four characters, rounded up.

    This is a model-agnostic heuristic, not a tokenizer.
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class TokenCounter:
    """Counts tokens with a pluggable estimator.

    Defaults to :func:`estimate_tokens`.
    """

    def __init__(self, estimator: TokenEstimator | None = None):
        self._estimator = estimator or estimate_tokens

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    def count(self, text: str | None) -> int:
        """Count tokens in a text string."""
        return self._estimator(text or "")

    def count_interaction(self, interaction: Interaction) -> int:
        return self.count(interaction.input) + self.count(interaction.response)

    def count_context(self, context: MemoryContext) -> int:
        """Estimate the raw content size of a memory context.

        Counts history inputs and responses, memories and the summary,
        without any prompt formatting.
        """
        total = sum(self.count_interaction(turn) for turn in context.history)
        total += sum(self.count(memory) for memory in context.memories)
        if context.summary:
            total += self.count(context.summary)
        return total
