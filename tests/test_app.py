"""Tests for app module — RhapsodyApp wiring, dispatch, cascade and views."""

from __future__ import annotations

import pytest

from rhapsody.app import Action, ChatView, RhapsodyApp
from rhapsody.chat import TurnStatus
from rhapsody.config import RhapsodyConfig
from rhapsody.journal import InMemoryDocumentSink
from rhapsody.models import Message, Scene, Sender, Session, StateSnapshot
from rhapsody.operator import NoticeLevel, ScriptedOperator
from rhapsody.persistence import InMemoryStateStore
from rhapsody.provider import StubLLMProvider

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _app(
    provider: StubLLMProvider | None = None,
    operator: ScriptedOperator | None = None,
    store: InMemoryStateStore | None = None,
    **config: object,
) -> RhapsodyApp:
    return RhapsodyApp(
        RhapsodyConfig(api_key="sk-test", **config),
        provider=provider or StubLLMProvider(replies=["Scene summary."], chunks=["Aye."]),
        store=store or InMemoryStateStore(),
        operator=operator or ScriptedOperator(),
        documents=InMemoryDocumentSink(),
    )


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def test_fresh_start_has_no_session() -> None:
    app = _app()
    assert app.state == StateSnapshot()
    view = app.build_view()
    assert not view.input.enabled
    assert view.input.placeholder == "Start a session to begin..."


def test_startup_restores_saved_state_and_opens_scene() -> None:
    store = InMemoryStateStore()
    legacy = StateSnapshot(
        current_session=Session(number=2, name="Session 2"),
        session_history=[Session(number=1, name="Session 1")],
    )
    store.save(legacy)
    app = _app(store=store)
    assert app.state.highest_session_number == 2
    assert app.state.current_scene is not None
    assert app.state.current_scene.number == 1


def test_defaults_from_config(tmp_path) -> None:
    app = RhapsodyApp(
        RhapsodyConfig(state_path=tmp_path / "state.json", journal_dir=tmp_path / "journal"),
        provider=StubLLMProvider(),
    )
    assert type(app.persistence.store).__name__ == "JsonFileStateStore"
    assert type(app.documents).__name__ == "FileDocumentSink"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def test_every_action_has_a_handler() -> None:
    app = _app()
    assert set(app._handlers) == set(Action)


@pytest.mark.asyncio
async def test_dispatch_accepts_strings_and_rejects_unknown() -> None:
    app = _app()
    session = await app.dispatch("start_session", name="Night One")
    assert session.name == "Night One"
    with pytest.raises(ValueError):
        await app.dispatch("explode")


@pytest.mark.asyncio
async def test_start_session_opens_scene_one() -> None:
    app = _app()
    await app.dispatch(Action.START_SESSION)
    assert app.state.current_scene.number == 1
    assert app.sessions.current.scene_count == 1


@pytest.mark.asyncio
async def test_new_end_restart_scene_and_pin() -> None:
    app = _app()
    await app.dispatch(Action.START_SESSION)
    scene = await app.dispatch(Action.NEW_SCENE, increment_number=True)
    assert scene.number == 2

    await app.submit("Hail the ship")
    message_id = app.state.current_scene.messages[0].id
    assert await app.dispatch(Action.TOGGLE_PIN, message_id=message_id)
    assert app.state.current_scene.messages[0].is_pinned

    assert await app.dispatch(Action.RESTART_SCENE)
    assert app.state.current_scene.messages == []

    await app.submit("Again")
    outcome = await app.dispatch(Action.END_SCENE)
    assert outcome.archived is scene
    assert app.state.current_scene.number == 3


@pytest.mark.asyncio
async def test_new_scene_asks_before_dropping_messages() -> None:
    operator = ScriptedOperator(confirm=False)
    app = _app(operator=operator)
    await app.dispatch(Action.START_SESSION)
    await app.submit("keep me")
    scene = app.state.current_scene

    assert await app.dispatch(Action.NEW_SCENE) is None
    assert app.state.current_scene is scene
    assert len(operator.confirmations) == 1

    operator.confirm_answer = True
    replacement = await app.dispatch(Action.NEW_SCENE, name="Fresh")
    assert replacement is app.state.current_scene
    assert replacement.name == "Fresh"
    assert replacement.messages == []


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_without_session_warns() -> None:
    operator = ScriptedOperator()
    app = _app(operator=operator)
    outcome = await app.submit("hello")
    assert outcome.status == TurnStatus.REFUSED
    assert operator.messages(NoticeLevel.WARNING) == ["Please start a session first!"]


@pytest.mark.asyncio
async def test_submit_failure_notifies_error() -> None:
    operator = ScriptedOperator()
    app = _app(provider=StubLLMProvider(fail_with=RuntimeError("x")), operator=operator)
    await app.dispatch(Action.START_SESSION)
    outcome = await app.submit("hello")
    assert outcome.status == TurnStatus.FAILED
    assert operator.messages(NoticeLevel.ERROR) == [
        "Failed to get AI response. Check your API key and connection."
    ]


# ---------------------------------------------------------------------------
# End session cascade
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_start_session_archives_current_scene_first() -> None:
    app = _app()
    first = await app.dispatch(Action.START_SESSION, name="Night One")
    await app.submit("hello there")
    scene = app.state.current_scene

    second = await app.dispatch(Action.START_SESSION, name="Night Two")

    assert second is not None
    assert app.state.scene_history == [scene]
    assert scene.summary == "Scene summary."
    assert app.state.session_history == [first]
    assert first.end_time is not None
    assert app.state.current_scene.session_id == second.id
    assert app.state.current_scene.number == 1


@pytest.mark.asyncio
async def test_start_session_aborted_when_scene_end_cancelled() -> None:
    app = _app(operator=ScriptedOperator(cancel_edits=True))
    first = await app.dispatch(Action.START_SESSION)
    await app.submit("hello there")
    scene = app.state.current_scene

    assert await app.dispatch(Action.START_SESSION) is None
    assert app.sessions.current is first
    assert app.state.current_scene is scene
    assert len(scene.messages) == 2
    assert app.state.session_history == []


@pytest.mark.asyncio
async def test_end_session_cascades_into_end_scene() -> None:
    app = _app()
    await app.dispatch(Action.START_SESSION)
    await app.submit("We board the wreck")
    scene = app.state.current_scene

    ended = await app.dispatch(Action.END_SESSION)

    assert ended is not None
    assert app.state.scene_history[-1] is scene
    assert scene.summary == "Scene summary."
    assert app.state.session_history == [ended]
    assert app.sessions.current is None
    assert app.state.current_scene is None


@pytest.mark.asyncio
async def test_end_session_with_empty_scene_skips_summary() -> None:
    provider = StubLLMProvider()
    app = _app(provider=provider)
    await app.dispatch(Action.START_SESSION)
    assert await app.dispatch(Action.END_SESSION) is not None
    assert app.state.scene_history == []
    assert provider.requests == []


@pytest.mark.asyncio
async def test_end_session_aborted_when_summary_cancelled() -> None:
    app = _app(operator=ScriptedOperator(cancel_edits=True))
    await app.dispatch(Action.START_SESSION)
    await app.submit("hello")
    assert await app.dispatch(Action.END_SESSION) is None
    assert app.sessions.current is not None


@pytest.mark.asyncio
async def test_end_session_declined_or_missing() -> None:
    app = _app(operator=ScriptedOperator(confirm=False))
    assert await app.dispatch(Action.END_SESSION) is None
    await app.dispatch(Action.START_SESSION)
    assert await app.dispatch(Action.END_SESSION) is None
    assert app.sessions.current is not None


# ---------------------------------------------------------------------------
# History management
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_clear_history_and_reset_numbering() -> None:
    app = _app()
    for _ in range(2):
        await app.dispatch(Action.START_SESSION)
        await app.dispatch(Action.END_SESSION)
    assert await app.dispatch(Action.CLEAR_HISTORY) == 2
    assert app.state.session_history == []
    assert app.state.highest_session_number == 2
    assert await app.dispatch(Action.RESET_NUMBERING)
    assert app.state.highest_session_number == 0


@pytest.mark.asyncio
async def test_clear_history_declined() -> None:
    app = _app(operator=ScriptedOperator(confirm=False))
    app.state.session_history.append(Session(number=1, name="kept"))
    assert await app.dispatch(Action.CLEAR_HISTORY) == 0
    assert len(app.state.session_history) == 1
    assert not await app.dispatch(Action.RESET_NUMBERING)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_build_view_after_turn() -> None:
    app = _app()
    await app.dispatch(Action.START_SESSION, name="Session X")
    app.state.scene_history.append(Scene(name="earlier", summary="s"))
    await app.submit("hello")

    view = app.build_view()

    assert isinstance(view, ChatView)
    assert len(view.messages) == 2
    assert not view.is_empty
    assert view.input.enabled
    assert view.scene_controls.session_name == "Session X"
    assert view.scene_controls.scene_number == 1
    assert view.scene_controls.previous_scene_exists
    assert view.total_tokens > 0
    assert not view.token_warning
    with pytest.raises(AttributeError):
        view.is_empty = True  # type: ignore[misc]


@pytest.mark.asyncio
async def test_view_token_warning_near_limit() -> None:
    app = _app(max_context_tokens=10)
    await app.dispatch(Action.START_SESSION)
    app.state.current_scene.messages.append(Message(sender=Sender.USER, content="x" * 36))
    assert app.build_view().token_warning
