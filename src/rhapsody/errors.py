"""Error taxonomy for the session manager.

Internal components raise these; only the chat, scene and session
orchestrators decide what the operator sees. None of them is fatal.
"""

from __future__ import annotations

from enum import StrEnum


class RhapsodyError(Exception):
    """Base class for all session-manager errors."""


class ValidationFailure(StrEnum):
    """Why a turn was refused before any state was touched."""

    NO_ACTIVE_SESSION = "no_active_session"
    EMPTY_INPUT = "empty_input"
    MISSING_CREDENTIAL = "missing_credential"
    NO_ACTIVE_SCENE = "no_active_scene"
    TURN_IN_PROGRESS = "turn_in_progress"


_VALIDATION_TEXT: dict[ValidationFailure, str] = {
    ValidationFailure.NO_ACTIVE_SESSION: "Please start a session first!",
    ValidationFailure.EMPTY_INPUT: "Please enter a message.",
    ValidationFailure.MISSING_CREDENTIAL: "Please set your DeepSeek API key in module settings.",
    ValidationFailure.NO_ACTIVE_SCENE: "No active scene!",
    ValidationFailure.TURN_IN_PROGRESS: "Please wait for the current response to finish.",
}


class ValidationError(RhapsodyError):
    """Raised when a turn's preconditions are not met."""

    def __init__(self, reason: ValidationFailure) -> None:
        self.reason = reason
        super().__init__(_VALIDATION_TEXT[reason])


class TransportError(RhapsodyError):
    """Raised when a language-model call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class StreamParseError(RhapsodyError):
    """Raised for a malformed streaming fragment. Callers skip the fragment."""


class PersistenceWarning(RhapsodyError, UserWarning):
    """A save or load failure. Logged and kept for display, never raised to callers."""
