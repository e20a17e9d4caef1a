"""Summary generation — rolling history summaries and narrative scene summaries."""

from __future__ import annotations

import logging

from .markup import strip_html
from .models import Message, Sender
from .provider import ChatMessage, ChatRequest, ChatRole, LLMProvider, transport_error_from
from .telemetry import trace_llm_call

logger = logging.getLogger(__name__)

_HISTORY_PROMPT = (
    "Summarize the key facts, events, and context from this RPG conversation. "
    "Focus on information that would be important for continuing the scene:\n\n{conversation}"
)

_SCENE_PROMPT = """Create a narrative summary of this {system} RPG scene. Include:
- What happened in the scene
- Key NPCs introduced or interacted with
- Important locations mentioned
- Significant items or clues discovered
- Any unresolved questions or hooks
- Any {system}-specific mechanics or rules that came up

Format it as an engaging narrative summary that would be fun to read later.
Keep it appropriate for {system}'s tone and setting.

Conversation:
{conversation}"""


def format_transcript(messages: list[Message]) -> str:
    """Render messages as ``Player:``/``GM:`` lines, skipping loading and marker entries."""
    lines = []
    for message in messages:
        if message.is_loading or message.is_marker:
            continue
        speaker = "Player" if message.sender == Sender.USER else "GM"
        lines.append(f"{speaker}: {strip_html(message.content)}")
    return "\n".join(lines)


class Summarizer:
    """Asks the language model for summaries through non-streaming calls."""

    def __init__(self, provider: LLMProvider, model: str = "") -> None:
        self._provider = provider
        self._model = model

    async def summarize_history(self, messages: list[Message]) -> str:
        """Free-text summary of older turns, used for context compression."""
        prompt = _HISTORY_PROMPT.format(conversation=format_transcript(messages))
        return await self._complete(prompt, temperature=0.3, max_tokens=500, kind="history")

    async def summarize_scene(self, messages: list[Message], system_info: str) -> str:
        """Narrative summary of a whole scene, shown to the operator for review."""
        prompt = _SCENE_PROMPT.format(
            system=system_info, conversation=format_transcript(messages)
        )
        return await self._complete(prompt, temperature=0.7, max_tokens=1000, kind="scene")

    async def _complete(self, prompt: str, temperature: float, max_tokens: int, kind: str) -> str:
        request = ChatRequest(
            model=self._model,
            messages=[ChatMessage(role=ChatRole.USER, content=prompt)],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        with trace_llm_call(f"summary.{kind}", temperature, max_tokens) as span:
            try:
                response = await self._provider.chat(request)
            except Exception as exc:
                logger.warning("%s summary request failed: %s", kind, exc)
                raise transport_error_from(exc) from exc
            span.set_attribute("llm.response_chars", len(response.content))
            if response.usage is not None:
                span.set_attribute("llm.completion_tokens", response.usage.completion_tokens)
        return response.content
