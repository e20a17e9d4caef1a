"""Tests for context module — ContextBuilder turn assembly."""

from __future__ import annotations

from rhapsody.context import ContextBuilder, TableInfo
from rhapsody.message_store import MessageStore, summary_marker
from rhapsody.models import Message, Scene, Sender
from rhapsody.provider import ChatRole

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user(text: str, pinned: bool = False) -> Message:
    return Message(sender=Sender.USER, content=text, is_pinned=pinned)


def _ai(text: str) -> Message:
    return Message(sender=Sender.AI, content=f"<p>{text}</p>")


def _build(messages: list[Message], history: list[Scene] | None = None, summary: str = ""):
    return ContextBuilder().build(
        messages, history or [], "Pathfinder 2e", "Age of Ashes", "Breachill", summary
    )


# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------


def test_table_info_defaults() -> None:
    table = TableInfo()
    assert table.system_info == "Unknown System"
    assert table.world_name == "Unknown World"
    assert table.location_name == "Unknown Location"


def test_system_prompt_names_system_world_and_location() -> None:
    turns = _build([])
    assert len(turns) == 1
    assert turns[0].role == ChatRole.SYSTEM
    assert "Pathfinder 2e" in turns[0].content
    assert '"Age of Ashes"' in turns[0].content
    assert "Breachill" in turns[0].content


def test_system_prompt_includes_running_summary() -> None:
    turns = _build([], summary="The party met Halgrim.")
    assert "Context from earlier in scene: The party met Halgrim." in turns[0].content


def test_system_prompt_includes_stripped_previous_scene_summary() -> None:
    older = Scene(name="old", summary="<p>ancient</p>")
    previous = Scene(name="prev", summary="<p>The <em>gate</em> fell.</p>")
    turns = _build([], history=[older, previous])
    assert "Previous scene summary: The gate fell." in turns[0].content
    assert "ancient" not in turns[0].content


def test_no_previous_scene_section_without_history() -> None:
    assert "Previous scene summary" not in _build([])[0].content


# ---------------------------------------------------------------------------
# Turn ordering and filtering
# ---------------------------------------------------------------------------


def test_roles_and_stripping() -> None:
    turns = _build([_user("hello"), _ai("welcome")])
    assert [t.role for t in turns[1:]] == [ChatRole.USER, ChatRole.ASSISTANT]
    assert turns[2].content == "welcome"


def test_pinned_messages_come_first() -> None:
    pinned = _user("remember the key", pinned=True)
    turns = _build([_user("a"), pinned, _ai("b")])
    assert [t.content for t in turns[1:]] == ["remember the key", "a", "b"]


def test_pinned_message_before_marker_is_kept() -> None:
    pinned = _user("old but pinned", pinned=True)
    messages = [pinned, _user("compressed away"), summary_marker(), _user("recent")]
    contents = [t.content for t in _build(messages)[1:]]
    assert contents == ["old but pinned", "recent"]


def test_loading_and_marker_are_never_sent() -> None:
    messages = [_user("q"), summary_marker(), MessageStore.ai_placeholder()]
    contents = [t.content for t in _build(messages)[1:]]
    assert contents == []


def test_rendered_reply_keeps_line_structure() -> None:
    store = MessageStore(Scene(name="s"))
    reply = store.append(store.ai_placeholder())
    store.update_streaming(reply, "The door creaks.\n\nA goblin appears.\nIt snarls.", complete=True)
    turns = _build(store.messages)
    assert turns[1].role == ChatRole.ASSISTANT
    assert turns[1].content == "The door creaks.\n\nA goblin appears.\nIt snarls."
