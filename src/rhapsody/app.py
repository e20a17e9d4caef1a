"""Application façade — wires the components together and exposes operator actions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .chat import ChatOrchestrator, PartialObserver, TurnOutcome, TurnStatus
from .config import RhapsodyConfig
from .context_compression import ContextCompressor
from .journal import DocumentSink, FileDocumentSink, InMemoryDocumentSink
from .markup import ContentRenderer, EscapingRenderer
from .models import Message, Scene, Session
from .operator import NoticeLevel, Operator, ScriptedOperator
from .persistence import InMemoryStateStore, JsonFileStateStore, PersistenceGateway, StateStore
from .provider import LLMProvider
from .provider_factory import ProviderFactory
from .scene import SceneEndOutcome, SceneEndStatus, SceneLifecycle
from .session import SessionLifecycle
from .summarizer import Summarizer

logger = logging.getLogger(__name__)


class Action(StrEnum):
    """Every operation the operator can trigger outside of chatting."""

    START_SESSION = "start_session"
    END_SESSION = "end_session"
    NEW_SCENE = "new_scene"
    END_SCENE = "end_scene"
    RESTART_SCENE = "restart_scene"
    TOGGLE_PIN = "toggle_pin"
    CLEAR_HISTORY = "clear_history"
    RESET_NUMBERING = "reset_numbering"


# ---------------------------------------------------------------------------
# View models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SceneControlsView:
    scene_name: str | None
    session_name: str | None
    scene_number: int | None
    previous_scene_exists: bool
    has_active_session: bool


@dataclass(frozen=True)
class InputView:
    placeholder: str
    enabled: bool


@dataclass(frozen=True)
class ChatView:
    messages: tuple[Message, ...]
    is_empty: bool
    scene_controls: SceneControlsView
    input: InputView
    total_tokens: int
    token_warning: bool


# ---------------------------------------------------------------------------
# RhapsodyApp
# ---------------------------------------------------------------------------


class RhapsodyApp:
    """One assistant instance bound to a single persisted state snapshot.

    Collaborators default from *config*: a JSON state file and an HTML
    journal directory when their paths are set, in-memory stores otherwise.
    """

    def __init__(
        self,
        config: RhapsodyConfig | None = None,
        provider: LLMProvider | None = None,
        store: StateStore | None = None,
        operator: Operator | None = None,
        documents: DocumentSink | None = None,
        renderer: ContentRenderer | None = None,
    ) -> None:
        self.config = config or RhapsodyConfig()
        self.provider = provider or ProviderFactory.create(self.config)
        self.operator = operator or ScriptedOperator()
        if store is None:
            store = (
                JsonFileStateStore(self.config.state_path)
                if self.config.state_path is not None
                else InMemoryStateStore()
            )
        if documents is None:
            documents = (
                FileDocumentSink(self.config.journal_dir)
                if self.config.journal_dir is not None
                else InMemoryDocumentSink()
            )
        self.documents = documents
        renderer = renderer or EscapingRenderer()

        self.persistence = PersistenceGateway(store)
        self.state = self.persistence.load()
        self.sessions = SessionLifecycle(self.state)
        self.sessions.restore()

        summarizer = Summarizer(self.provider, model=self.config.model)
        self.compressor = ContextCompressor(summarizer, max_tokens=self.config.max_context_tokens)
        self.chat = ChatOrchestrator(
            self.state,
            self.provider,
            self.compressor,
            self.persistence,
            table=self.config.table,
            api_key=self.config.api_key,
            model=self.config.model,
            streaming=self.config.streaming,
            renderer=renderer,
        )
        self.scenes = SceneLifecycle(
            self.state,
            self.sessions,
            summarizer,
            self.operator,
            documents,
            self.persistence,
            table=self.config.table,
            renderer=renderer,
        )

        self._handlers: dict[Action, Callable[..., Awaitable[Any]]] = {
            Action.START_SESSION: self.start_session,
            Action.END_SESSION: self.end_session,
            Action.NEW_SCENE: self.new_scene,
            Action.END_SCENE: self.end_scene,
            Action.RESTART_SCENE: self.restart_scene,
            Action.TOGGLE_PIN: self.toggle_pin,
            Action.CLEAR_HISTORY: self.clear_history,
            Action.RESET_NUMBERING: self.reset_numbering,
        }

        if self.sessions.has_active_session() and self.state.current_scene is None:
            self.scenes.start_new_scene()
        logger.info(
            "Loaded state: %d archived sessions, %d archived scenes",
            len(self.state.session_history),
            len(self.state.scene_history),
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, action: Action | str, **kwargs: Any) -> Any:
        """Run the handler registered for *action*.

        Raises:
            ValueError: If *action* is not a known :class:`Action`.
        """
        handler = self._handlers.get(Action(action))
        if handler is None:
            msg = f"No handler registered for action '{action}'"
            raise ValueError(msg)
        return await handler(**kwargs)

    async def submit(self, text: str, on_partial: PartialObserver | None = None) -> TurnOutcome:
        outcome = await self.chat.submit(text, on_partial=on_partial)
        if outcome.status == TurnStatus.REFUSED:
            self.operator.notify(NoticeLevel.WARNING, outcome.error)
        elif outcome.status == TurnStatus.FAILED:
            self.operator.notify(
                NoticeLevel.ERROR, "Failed to get AI response. Check your API key and connection."
            )
        return outcome

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _close_scene_for_session_change(self) -> bool:
        """End the current Scene if it has messages. ``False`` means it stayed open."""
        scene = self.state.current_scene
        if scene is None or not scene.messages:
            return True
        outcome = await self.scenes.end_scene()
        if outcome.status != SceneEndStatus.ARCHIVED:
            logger.info("Session change aborted: scene end %s", outcome.status)
            return False
        return True

    async def start_session(self, name: str | None = None) -> Session | None:
        """Start a new Session, ending the active one and its Scene first.

        Returns ``None`` without changes when the current Scene cannot be archived.
        """
        if self.sessions.has_active_session() and not await self._close_scene_for_session_change():
            return None
        session = self.sessions.start_new_session(name)
        self.scenes.start_new_scene()
        self.operator.notify(NoticeLevel.INFO, f"Started {session.name}")
        return session

    async def end_session(self) -> Session | None:
        """End the current Session, ending its Scene first when it has messages.

        Returns ``None`` without changes when there is no Session, the
        operator declines, or the implicit scene end does not archive.
        """
        session = self.sessions.current
        if session is None:
            self.operator.notify(NoticeLevel.WARNING, "No active session to end.")
            return None
        if not await self.operator.confirm(f"End {session.name}?", title="End Session"):
            return None
        if not await self._close_scene_for_session_change():
            return None

        ended = self.sessions.end_current_session()
        self.state.current_scene = None
        self.persistence.save(self.state)
        self.operator.notify(NoticeLevel.INFO, f"Ended {session.name}")
        return ended

    async def new_scene(self, name: str | None = None, increment_number: bool = False) -> Scene | None:
        """Replace the current Scene. Unarchived messages are only dropped after confirmation."""
        scene = self.state.current_scene
        if scene is not None and scene.messages:
            confirmed = await self.operator.confirm(
                f"{scene.name} has messages that were not archived. Discard them and start a new scene?",
                title="New Scene",
            )
            if not confirmed:
                return None
        return self.scenes.start_new_scene(name, increment_number=increment_number)

    async def end_scene(self) -> SceneEndOutcome:
        return await self.scenes.end_scene()

    async def restart_scene(self) -> bool:
        return await self.scenes.restart_scene()

    async def toggle_pin(self, message_id: str) -> bool:
        return self.scenes.toggle_pin(message_id)

    async def clear_history(self) -> int:
        confirmed = await self.operator.confirm(
            "Delete all archived sessions and scenes? This cannot be undone.",
            title="Clear History",
        )
        if not confirmed:
            return 0
        removed = self.sessions.clear_history()
        self.persistence.save(self.state)
        return removed

    async def reset_numbering(self) -> bool:
        confirmed = await self.operator.confirm(
            "Reset session numbering back to 1?", title="Reset Session Numbering"
        )
        if not confirmed:
            return False
        self.sessions.reset_session_numbering()
        self.persistence.save(self.state)
        return True

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def _input_view(self) -> InputView:
        if not self.sessions.has_active_session():
            return InputView(placeholder="Start a session to begin...", enabled=False)
        if self.state.current_scene is None:
            return InputView(placeholder="No active scene", enabled=False)
        if self.chat.is_busy:
            return InputView(placeholder="Waiting for response...", enabled=False)
        return InputView(placeholder="Ask your GM assistant...", enabled=True)

    def build_view(self) -> ChatView:
        scene = self.state.current_scene
        session = self.sessions.current
        messages = tuple(scene.messages) if scene is not None else ()
        budget = self.compressor.budget_for(
            list(messages), self.state.scene_history, self.state.context_summary
        )
        controls = SceneControlsView(
            scene_name=scene.name if scene is not None else None,
            session_name=session.name if session is not None else None,
            scene_number=scene.number if scene is not None else None,
            previous_scene_exists=self.state.previous_scene is not None,
            has_active_session=session is not None,
        )
        return ChatView(
            messages=messages,
            is_empty=not messages,
            scene_controls=controls,
            input=self._input_view(),
            total_tokens=budget.consumed,
            token_warning=budget.is_near_limit(),
        )
