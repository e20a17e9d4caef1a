"""Token budget tracker — length-based estimate, configurable maximum."""

from __future__ import annotations

import math


def estimate_tokens(text: str | None) -> int:
    """Estimate token count from text. Rough heuristic: 4 characters per token."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


class TokenBudget:
    """Tracks token consumption against a configured maximum."""

    def __init__(self, max_tokens: int) -> None:
        if max_tokens <= 0:
            msg = "max_tokens must be positive"
            raise ValueError(msg)
        self._max = max_tokens
        self._consumed = 0

    def consume(self, tokens: int) -> None:
        self._consumed += tokens

    def consume_text(self, text: str | None) -> int:
        """Consume the estimated size of *text* and return that estimate."""
        tokens = estimate_tokens(text)
        self._consumed += tokens
        return tokens

    def is_within_budget(self) -> bool:
        return self._consumed <= self._max

    def is_near_limit(self, threshold: float = 0.8) -> bool:
        """True once consumption passes *threshold* of the maximum."""
        return self._consumed > self._max * threshold

    @property
    def max_tokens(self) -> int:
        return self._max

    @property
    def consumed(self) -> int:
        return self._consumed
