"""LLM Provider abstraction — pluggable backend for real and stub LLMs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel

from .errors import TransportError

# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


class ProviderCapabilities(BaseModel):
    """Declares what a provider can do."""

    streaming: bool = False
    requires_credential: bool = True


class ChatRole(StrEnum):
    """Role of a message participant."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """Single message in a conversation."""

    model_config = {"frozen": True}

    role: ChatRole
    content: str


class ChatRequest(BaseModel):
    """Request payload sent to an LLM provider."""

    model: str = ""
    messages: list[ChatMessage]
    max_tokens: int | None = None
    temperature: float | None = None


class TokenUsage(BaseModel):
    """Token consumption metrics for a single request."""

    prompt_tokens: int
    completion_tokens: int


class ChatResponse(BaseModel):
    """Response returned from an LLM provider."""

    content: str
    usage: TokenUsage | None = None


class StreamListener(Protocol):
    """Receives the events of one streaming completion, strictly in order.

    ``on_chunk`` is called zero or more times, followed by exactly one of
    ``on_complete`` or ``on_error``.
    """

    def on_chunk(self, text: str) -> None: ...

    def on_complete(self) -> None: ...

    def on_error(self, error: Exception) -> None: ...


# ---------------------------------------------------------------------------
# LLMProvider ABC
# ---------------------------------------------------------------------------


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the canonical provider name (e.g. 'deepseek', 'stub')."""

    @abstractmethod
    def capabilities(self) -> ProviderCapabilities:
        """Describe what this provider supports."""

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send a non-streaming chat completion request."""

    @abstractmethod
    async def stream_chat(self, request: ChatRequest, listener: StreamListener) -> None:
        """Send a streaming request, pushing fragments and the terminal event to *listener*."""


# ---------------------------------------------------------------------------
# Stub implementation (for testing / offline development)
# ---------------------------------------------------------------------------


class StubLLMProvider(LLMProvider):
    """Returns canned responses without making real HTTP calls.

    ``replies`` are consumed in order by :meth:`chat`; ``chunks`` is the
    fragment sequence every :meth:`stream_chat` call delivers. Setting
    ``fail_with`` makes the next call fail with that exception.
    """

    _CANNED = "This is a stub response for testing purposes."

    def __init__(
        self,
        replies: list[str] | None = None,
        chunks: list[str] | None = None,
        fail_with: Exception | None = None,
        fail_after_chunks: int | None = None,
    ) -> None:
        self._replies = list(replies or [])
        self._chunks = chunks
        self.fail_with = fail_with
        self._fail_after_chunks = fail_after_chunks
        self.requests: list[ChatRequest] = []

    def name(self) -> str:
        return "stub"

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(streaming=True, requires_credential=False)

    def _take_failure(self) -> Exception | None:
        error, self.fail_with = self.fail_with, None
        return error

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Return the next scripted reply, or a deterministic canned one."""
        self.requests.append(request)
        error = self._take_failure()
        if error is not None:
            raise error
        reply = self._replies.pop(0) if self._replies else f"{self._CANNED} (model={request.model})"
        prompt_tokens = sum(len(m.content.split()) for m in request.messages)
        return ChatResponse(
            content=reply,
            usage=TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=len(reply.split())),
        )

    async def stream_chat(self, request: ChatRequest, listener: StreamListener) -> None:
        self.requests.append(request)
        chunks = self._chunks if self._chunks is not None else [self._CANNED]
        error = self._take_failure()
        if error is not None and self._fail_after_chunks is None:
            listener.on_error(error)
            return
        for index, chunk in enumerate(chunks):
            if error is not None and index == self._fail_after_chunks:
                listener.on_error(error)
                return
            listener.on_chunk(chunk)
        if error is not None:
            listener.on_error(error)
            return
        listener.on_complete()


def transport_error_from(exc: Exception) -> TransportError:
    """Normalise any provider-side exception into a :class:`TransportError`."""
    if isinstance(exc, TransportError):
        return exc
    return TransportError(str(exc) or type(exc).__name__)
