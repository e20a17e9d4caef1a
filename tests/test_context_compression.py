"""Tests for context_compression module — budget checks and marker insertion."""

from __future__ import annotations

import pytest

from rhapsody.context_compression import ContextCompressor, merge_summary
from rhapsody.errors import TransportError
from rhapsody.message_store import MessageStore, summary_marker
from rhapsody.models import SUMMARY_MARKER_ID, Message, Scene, Sender
from rhapsody.provider import StubLLMProvider
from rhapsody.summarizer import Summarizer

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _messages(count: int, chars: int = 40) -> list[Message]:
    out = []
    for i in range(count):
        sender = Sender.USER if i % 2 == 0 else Sender.AI
        out.append(Message(sender=sender, content=f"{i}:" + "x" * chars))
    return out


def _compressor(
    provider: StubLLMProvider | None = None, max_tokens: int = 3000
) -> tuple[ContextCompressor, StubLLMProvider]:
    provider = provider or StubLLMProvider(replies=["They found the map."])
    return ContextCompressor(Summarizer(provider), max_tokens=max_tokens), provider


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


def test_rejects_non_positive_budget() -> None:
    with pytest.raises(ValueError):
        ContextCompressor(Summarizer(StubLLMProvider()), max_tokens=0)


def test_context_size_prefers_token_count() -> None:
    compressor, _ = _compressor()
    messages = [Message(sender=Sender.USER, content="x" * 400, token_count=7)]
    assert compressor.current_context_size(messages, []) == 7


def test_context_size_counts_summary_and_previous_scene() -> None:
    compressor, _ = _compressor()
    previous = Scene(name="prev", summary="<p>" + "y" * 40 + "</p>")
    size = compressor.current_context_size([], [previous], context_summary="z" * 20)
    assert size == 5 + 10


def test_context_size_skips_loading_and_pre_marker_messages() -> None:
    compressor, _ = _compressor()
    messages = [
        Message(sender=Sender.USER, content="x" * 400),
        summary_marker(),
        Message(sender=Sender.USER, content="abcd"),
        MessageStore.ai_placeholder(),
    ]
    assert compressor.current_context_size(messages, []) == 1


def test_appending_never_decreases_context_size() -> None:
    compressor, _ = _compressor()
    messages: list[Message] = []
    previous = 0
    for message in _messages(6):
        messages.append(message)
        size = compressor.current_context_size(messages, [])
        assert size >= previous
        previous = size


def test_should_compress_when_over_budget() -> None:
    compressor, _ = _compressor(max_tokens=50)
    assert not compressor.should_compress(_messages(2), [])
    assert compressor.should_compress(_messages(7), [])


# ---------------------------------------------------------------------------
# compress
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_compress_short_window_is_noop() -> None:
    compressor, provider = _compressor()
    messages = _messages(5)
    result = await compressor.compress(messages)
    assert result.updated_messages == messages
    assert result.summary == ""
    assert not result.changed
    assert provider.requests == []


@pytest.mark.asyncio
async def test_compress_seven_messages_keeps_last_five() -> None:
    compressor, provider = _compressor(max_tokens=50)
    messages = _messages(7)
    assert compressor.should_compress(messages, [])

    result = await compressor.compress(messages)

    assert result.summary == "They found the map."
    assert result.compressed_count == 2
    assert result.marker_inserted
    ids = [m.id for m in result.updated_messages]
    assert ids.index(SUMMARY_MARKER_ID) == 2
    assert result.updated_messages[3:] == messages[2:]
    assert len(result.updated_messages) == 8
    # original list untouched
    assert len(messages) == 7

    prompt = provider.requests[0].messages[0].content
    assert "Player: 0:" in prompt
    assert "GM: 1:" in prompt
    assert "2:" not in prompt


@pytest.mark.asyncio
async def test_compress_again_supersedes_old_marker() -> None:
    provider = StubLLMProvider(replies=["first", "second"])
    compressor, _ = _compressor(provider)
    first = await compressor.compress(_messages(7))
    extended = first.updated_messages + _messages(3)
    second = await compressor.compress(extended)
    markers = [m for m in second.updated_messages if m.is_marker]
    assert len(markers) == 1
    assert second.summary == "second"
    assert len([m for m in second.updated_messages if not m.is_marker]) == 10


@pytest.mark.asyncio
async def test_compress_failure_raises_transport_error() -> None:
    provider = StubLLMProvider(fail_with=RuntimeError("boom"))
    compressor, _ = _compressor(provider)
    with pytest.raises(TransportError, match="boom"):
        await compressor.compress(_messages(7))


# ---------------------------------------------------------------------------
# merge_summary
# ---------------------------------------------------------------------------


def test_merge_summary_appends() -> None:
    assert merge_summary("old", "new") == "old\n\nnew"
    assert merge_summary("", "new") == "new"
    assert merge_summary("old", "") == "old"
