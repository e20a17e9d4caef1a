"""Scene lifecycle — start, restart, end and archive Scenes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from .context import TableInfo
from .errors import TransportError, ValidationError, ValidationFailure
from .journal import DocumentHandle, DocumentSink
from .markup import ContentRenderer
from .message_store import MessageStore
from .models import SCENE_HISTORY_LIMIT, Scene, StateSnapshot, now
from .operator import NoticeLevel, Operator
from .persistence import PersistenceGateway
from .session import SessionLifecycle
from .summarizer import Summarizer
from .telemetry import trace_scene_end

logger = logging.getLogger(__name__)

SUMMARY_LOADING_TEXT = "Generating scene summary"


class SceneEndStatus(StrEnum):
    ARCHIVED = "archived"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    NOTHING_TO_END = "nothing_to_end"
    FAILED = "failed"


@dataclass
class SceneEndOutcome:
    status: SceneEndStatus
    archived: Scene | None = None
    next_scene: Scene | None = None
    document: DocumentHandle | None = None
    error: str = ""


class SceneLifecycle:
    """Owns ``current_scene`` and the bounded scene archive of a :class:`StateSnapshot`.

    Scene numbers come from the Session's ``scene_count``: the first Scene of
    a Session claims number 1, every Scene started with ``increment_number``
    advances the count, and any other new Scene reuses the current number.
    """

    def __init__(
        self,
        state: StateSnapshot,
        sessions: SessionLifecycle,
        summarizer: Summarizer,
        operator: Operator,
        documents: DocumentSink,
        persistence: PersistenceGateway,
        table: TableInfo | None = None,
        renderer: ContentRenderer | None = None,
    ) -> None:
        self._state = state
        self._sessions = sessions
        self._summarizer = summarizer
        self._operator = operator
        self._documents = documents
        self._persistence = persistence
        self.table = table or TableInfo()
        self._renderer = renderer

    @property
    def current(self) -> Scene | None:
        return self._state.current_scene

    @property
    def history(self) -> list[Scene]:
        return self._state.scene_history

    def _warn(self, text: str) -> None:
        logger.warning("%s", text)
        self._operator.notify(NoticeLevel.WARNING, text)

    def _save(self) -> None:
        if not self._persistence.save(self._state):
            self._operator.notify(NoticeLevel.WARNING, str(self._persistence.last_warning))

    # ------------------------------------------------------------------
    # Start / restart
    # ------------------------------------------------------------------

    def start_new_scene(self, name: str | None = None, increment_number: bool = False) -> Scene | None:
        session = self._sessions.current
        if session is None:
            self._warn(str(ValidationError(ValidationFailure.NO_ACTIVE_SESSION)))
            return None

        if increment_number or session.scene_count == 0:
            self._sessions.increment_scene_count()
        number = session.scene_count
        started = now()
        scene = Scene(
            name=name or f"Scene {number} - {started:%H:%M:%S}",
            number=number,
            session_id=session.id,
            start_time=started,
        )
        self._state.current_scene = scene
        self._state.context_summary = ""
        self._save()
        logger.info("Started scene %d (%s) in session %d", number, scene.name, session.number)
        return scene

    async def restart_scene(self) -> bool:
        """Clear the current Scene's messages in place. Returns ``False`` if nothing changed."""
        scene = self._state.current_scene
        if scene is None:
            self._warn("No scene to restart.")
            return False
        if scene.messages:
            confirmed = await self._operator.confirm(
                "This will clear all messages in the current scene. Continue?",
                title="Restart Scene",
            )
            if not confirmed:
                return False
        MessageStore(scene).clear()
        self._state.context_summary = ""
        self._save()
        logger.info("Restarted scene %s", scene.name)
        return True

    # ------------------------------------------------------------------
    # End / archive
    # ------------------------------------------------------------------

    async def end_scene(self) -> SceneEndOutcome:
        scene = self._state.current_scene
        if scene is None or self._sessions.current is None:
            self._warn("No scene to end.")
            return SceneEndOutcome(status=SceneEndStatus.NOTHING_TO_END)

        if not scene.messages:
            return await self._skip_empty(scene)

        with trace_scene_end(scene.id) as span:
            outcome = await self._summarize_and_archive(scene)
            span.set_attribute("scene.end_status", outcome.status.value)
        return outcome

    async def _summarize_and_archive(self, scene: Scene) -> SceneEndOutcome:
        store = MessageStore(scene, self._renderer)
        loading = store.append(store.loading_message(SUMMARY_LOADING_TEXT))
        try:
            summary = await self._summarizer.summarize_scene(
                [m for m in scene.messages if m.id != loading.id], self.table.system_info
            )
        except TransportError as exc:
            store.remove(loading.id)
            self._operator.notify(NoticeLevel.ERROR, "Failed to generate scene summary.")
            logger.warning("Scene summary failed for %s: %s", scene.name, exc)
            return SceneEndOutcome(status=SceneEndStatus.FAILED, error=str(exc))
        store.remove(loading.id)

        edited = await self._operator.edit_text(summary, title="Edit Scene Summary")
        if edited is None:
            logger.info("Scene end cancelled for %s", scene.name)
            return SceneEndOutcome(status=SceneEndStatus.CANCELLED)

        # the live scene stays untouched until the record exists
        finished = scene.model_copy(update={"summary": edited})
        try:
            document = self._documents.create_scene_record(finished, self._sessions.current, self.table)
        except Exception as exc:
            self._operator.notify(NoticeLevel.ERROR, "Failed to generate scene summary.")
            logger.warning("Journal record failed for %s: %s", scene.name, exc)
            return SceneEndOutcome(status=SceneEndStatus.FAILED, error=str(exc))
        scene.summary = edited
        self.archive(scene)
        next_scene = self.start_new_scene(increment_number=True)

        self._operator.notify(NoticeLevel.INFO, "Scene ended and journal created!")
        logger.info("Archived scene %s (%d in archive)", scene.name, len(self._state.scene_history))
        return SceneEndOutcome(
            status=SceneEndStatus.ARCHIVED, archived=scene, next_scene=next_scene, document=document
        )

    async def _skip_empty(self, scene: Scene) -> SceneEndOutcome:
        confirmed = await self._operator.confirm(
            f"{scene.name} has no messages. Skip to the next scene instead?",
            title="Empty Scene",
        )
        if not confirmed:
            return SceneEndOutcome(status=SceneEndStatus.CANCELLED)
        next_scene = self.start_new_scene(increment_number=True)
        return SceneEndOutcome(status=SceneEndStatus.SKIPPED, next_scene=next_scene)

    def archive(self, scene: Scene) -> None:
        """Append *scene* to the archive, dropping the oldest beyond the limit."""
        history = self._state.scene_history
        history.append(scene)
        if len(history) > SCENE_HISTORY_LIMIT:
            del history[: len(history) - SCENE_HISTORY_LIMIT]

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def toggle_pin(self, message_id: str) -> bool:
        scene = self._state.current_scene
        if scene is None or not MessageStore(scene).toggle_pin(message_id):
            return False
        self._save()
        return True
