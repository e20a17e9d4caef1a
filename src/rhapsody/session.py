"""Session lifecycle — numbering, scene counts and the session archive."""

from __future__ import annotations

import logging

from .models import Session, StateSnapshot, now

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """Creates and ends Sessions on a shared :class:`StateSnapshot`.

    Two counters exist side by side. The display ``number`` of a new Session
    is its position in the history (``len(session_history) + 1``), so it
    restarts after the history is cleared. ``highest_session_number`` only
    ever grows, until :meth:`reset_session_numbering` is called.
    """

    def __init__(self, state: StateSnapshot) -> None:
        self._state = state

    @property
    def current(self) -> Session | None:
        return self._state.current_session

    @property
    def history(self) -> list[Session]:
        return self._state.session_history

    @property
    def highest_session_number(self) -> int:
        return self._state.highest_session_number

    def has_active_session(self) -> bool:
        return self._state.current_session is not None

    def start_new_session(self, name: str | None = None) -> Session:
        current = self._state.current_session
        if current is not None and current.end_time is None:
            self.end_current_session()

        self._state.highest_session_number += 1
        number = len(self._state.session_history) + 1
        started = now()
        session = Session(
            number=number,
            name=name or f"Session {number} - {started:%Y-%m-%d}",
            start_time=started,
            scene_count=0,
        )
        self._state.current_session = session
        logger.info("Started session %d (%s)", session.number, session.name)
        return session

    def end_current_session(self) -> Session | None:
        session = self._state.current_session
        if session is None:
            return None
        session.end_time = now()
        self._state.session_history.append(session)
        self._state.current_session = None
        logger.info("Ended session %d (%s)", session.number, session.name)
        return session

    def increment_scene_count(self) -> None:
        if self._state.current_session is not None:
            self._state.current_session.scene_count += 1

    def next_scene_number(self) -> int:
        session = self._state.current_session
        return session.scene_count + 1 if session is not None else 1

    def reset_session_numbering(self) -> None:
        self._state.highest_session_number = 0
        logger.info("Session numbering reset")

    def clear_history(self) -> int:
        """Forget archived sessions and scenes. The monotonic counter survives."""
        removed = len(self._state.session_history)
        self._state.session_history.clear()
        self._state.scene_history.clear()
        logger.info("Cleared %d archived sessions", removed)
        return removed

    def restore(self) -> None:
        """Repair numbering of snapshots saved before the counter was persisted."""
        if self._state.highest_session_number:
            return
        sessions = list(self._state.session_history)
        if self._state.current_session is not None:
            sessions.append(self._state.current_session)
        self._state.highest_session_number = max((s.number for s in sessions), default=0)
