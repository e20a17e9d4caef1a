"""Session, Scene and Message records plus the persisted state snapshot."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SUMMARY_MARKER_ID = "summary-marker"
SUMMARY_MARKER_TEXT = "[Context compressed above this point]"

# Archived scenes kept for "previous scene" context
SCENE_HISTORY_LIMIT = 5


def new_id() -> str:
    return uuid.uuid4().hex[:16]


def now() -> datetime:
    """Current local time, timezone-aware so snapshots round-trip exactly."""
    return datetime.now().astimezone()


class _Record(BaseModel):
    # camelCase on the wire, snake_case in Python; both accepted on input
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Sender(StrEnum):
    USER = "user"
    AI = "ai"


class Message(_Record):
    """One turn of conversation, owned by exactly one Scene."""

    id: str = Field(default_factory=new_id)
    sender: Sender
    content: str = ""
    raw_content: str | None = None
    timestamp: datetime = Field(default_factory=now)
    is_loading: bool = False
    is_pinned: bool = False
    token_count: int | None = None

    @property
    def is_marker(self) -> bool:
        return self.id == SUMMARY_MARKER_ID


class Scene(_Record):
    """A bounded unit of conversation within a Session."""

    id: str = Field(default_factory=new_id)
    name: str
    number: int | None = None
    session_id: str | None = None
    messages: list[Message] = Field(default_factory=list)
    summary: str | None = None
    start_time: datetime = Field(default_factory=now)


class Session(_Record):
    """A top-level play period containing an ordered sequence of Scenes."""

    id: str = Field(default_factory=new_id)
    number: int
    name: str
    start_time: datetime = Field(default_factory=now)
    end_time: datetime | None = None
    scene_count: int = 0


class StateSnapshot(_Record):
    """Everything the persistence gateway stores between runs.

    The live application mutates one instance of this model in place; the
    gateway serialises it as-is.
    """

    current_scene: Scene | None = None
    scene_history: list[Scene] = Field(default_factory=list)
    context_summary: str = ""
    current_session: Session | None = None
    session_history: list[Session] = Field(default_factory=list)
    highest_session_number: int = 0

    @property
    def previous_scene(self) -> Scene | None:
        return self.scene_history[-1] if self.scene_history else None
