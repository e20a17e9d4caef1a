"""Context Compression — fold older turns into a rolling summary under a token budget."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .markup import strip_html
from .message_store import recent_messages, summary_marker
from .models import Message, Scene
from .summarizer import Summarizer
from .telemetry import trace_compression
from .token_budget import TokenBudget, estimate_tokens

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXT_TOKENS = 3000
DEFAULT_KEEP_LAST = 5


@dataclass
class CompressionResult:
    """Outcome of a compression pass."""

    updated_messages: list[Message]
    summary: str = ""
    compressed_count: int = 0
    marker_inserted: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.summary)


def merge_summary(existing: str, new: str) -> str:
    """Append *new* to the running summary; never replace it."""
    if not new:
        return existing
    if not existing:
        return new
    return f"{existing}\n\n{new}"


class ContextCompressor:
    """Decides when the active window overflows and compresses it."""

    def __init__(
        self,
        summarizer: Summarizer,
        max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        keep_last: int = DEFAULT_KEEP_LAST,
    ) -> None:
        if max_tokens <= 0:
            msg = "max_tokens must be positive"
            raise ValueError(msg)
        self._summarizer = summarizer
        self._max_tokens = max_tokens
        self._keep_last = keep_last

    @property
    def max_tokens(self) -> int:
        return self._max_tokens

    def budget_for(
        self,
        messages: list[Message],
        scene_history: list[Scene],
        context_summary: str = "",
    ) -> TokenBudget:
        """Token budget charged with everything the next request would carry."""
        budget = TokenBudget(self._max_tokens)
        budget.consume_text(context_summary)
        if scene_history:
            budget.consume_text(strip_html(scene_history[-1].summary or ""))
        for message in recent_messages(messages):
            if message.is_loading or message.is_marker:
                continue
            if message.token_count is not None:
                budget.consume(message.token_count)
            else:
                budget.consume(estimate_tokens(message.content))
        return budget

    def current_context_size(
        self,
        messages: list[Message],
        scene_history: list[Scene],
        context_summary: str = "",
    ) -> int:
        return self.budget_for(messages, scene_history, context_summary).consumed

    def should_compress(
        self,
        messages: list[Message],
        scene_history: list[Scene],
        context_summary: str = "",
    ) -> bool:
        return not self.budget_for(messages, scene_history, context_summary).is_within_budget()

    async def compress(self, messages: list[Message]) -> CompressionResult:
        """Summarise all but the last few recent turns and mark the boundary.

        Returns the input unchanged with an empty summary when the recent
        window is too short to be worth compressing. Summarizer failures
        propagate as :class:`~rhapsody.errors.TransportError`.
        """
        recent = recent_messages(messages)
        if len(recent) <= self._keep_last:
            return CompressionResult(updated_messages=messages)

        to_compress = recent[: -self._keep_last]
        to_keep = recent[-self._keep_last :]

        with trace_compression(len(to_compress)) as span:
            summary = await self._summarizer.summarize_history(to_compress)
            span.set_attribute("compression.summary_tokens", estimate_tokens(summary))

        index = next((i for i, m in enumerate(messages) if m.id == to_keep[0].id), -1)
        if index > 0:
            # a single marker bounds the window; older ones are superseded
            earlier = [m for m in messages[:index] if not m.is_marker]
            updated = [*earlier, summary_marker(), *messages[index:]]
        else:
            updated = list(messages)

        logger.info(
            "Compressed %d messages into a %d-token summary",
            len(to_compress),
            estimate_tokens(summary),
        )
        return CompressionResult(
            updated_messages=updated,
            summary=summary,
            compressed_count=len(to_compress),
            marker_inserted=index > 0,
        )
