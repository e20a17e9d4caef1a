"""Per-scene message list management — append, remove, pin, stream updates."""

from __future__ import annotations

from .markup import ContentRenderer, EscapingRenderer, escape_html
from .models import SUMMARY_MARKER_ID, SUMMARY_MARKER_TEXT, Message, Scene, Sender
from .token_budget import estimate_tokens


def recent_messages(messages: list[Message]) -> list[Message]:
    """Messages after the latest compression marker, or all of them if there is none."""
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].id == SUMMARY_MARKER_ID:
            return messages[index + 1 :]
    return list(messages)


def summary_marker() -> Message:
    return Message(id=SUMMARY_MARKER_ID, sender=Sender.AI, content=SUMMARY_MARKER_TEXT)


class MessageStore:
    """Ordered message list of a single Scene.

    The store never copies the Scene; every mutation is visible through
    ``scene.messages`` immediately.
    """

    def __init__(self, scene: Scene, renderer: ContentRenderer | None = None) -> None:
        self._scene = scene
        self._renderer = renderer if renderer is not None else EscapingRenderer()

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def messages(self) -> list[Message]:
        return self._scene.messages

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def user_message(text: str) -> Message:
        return Message(
            sender=Sender.USER,
            content=escape_html(text),
            token_count=estimate_tokens(text),
        )

    @staticmethod
    def ai_placeholder() -> Message:
        return Message(sender=Sender.AI, content="", raw_content="", is_loading=True)

    def loading_message(self, text: str) -> Message:
        return Message(sender=Sender.AI, content=self._renderer.render(text), is_loading=True)

    @staticmethod
    def error_message(text: str) -> Message:
        return Message(sender=Sender.AI, content=escape_html(text))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, message: Message) -> Message:
        self._scene.messages.append(message)
        return message

    def remove(self, message_id: str) -> bool:
        before = len(self._scene.messages)
        self._scene.messages = [m for m in self._scene.messages if m.id != message_id]
        return len(self._scene.messages) != before

    def remove_loading(self) -> int:
        """Drop every loading AI message. Returns how many were removed."""
        before = len(self._scene.messages)
        self._scene.messages = [
            m for m in self._scene.messages if not (m.is_loading and m.sender == Sender.AI)
        ]
        return before - len(self._scene.messages)

    def replace_all(self, messages: list[Message]) -> None:
        self._scene.messages = list(messages)

    def clear(self) -> None:
        self._scene.messages.clear()

    def find(self, message_id: str) -> Message | None:
        for message in self._scene.messages:
            if message.id == message_id:
                return message
        return None

    def toggle_pin(self, message_id: str) -> bool:
        message = self.find(message_id)
        if message is None:
            return False
        message.is_pinned = not message.is_pinned
        return True

    def set_pinned(self, message_id: str, pinned: bool) -> bool:
        message = self.find(message_id)
        if message is None:
            return False
        message.is_pinned = pinned
        return True

    def update_streaming(self, message: Message, markdown: str, complete: bool = False) -> None:
        """Apply the accumulated markdown of a streamed response to *message*."""
        message.raw_content = markdown
        if complete:
            message.content = self._renderer.render(markdown)
            message.token_count = estimate_tokens(markdown)
        else:
            message.content = self._renderer.render_partial(markdown)
        message.is_loading = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def non_loading(self) -> list[Message]:
        return [m for m in self._scene.messages if not m.is_loading and not m.is_marker]

    def loading_count(self) -> int:
        return sum(1 for m in self._scene.messages if m.is_loading and m.sender == Sender.AI)

    def recent(self) -> list[Message]:
        return recent_messages(self._scene.messages)

    def __len__(self) -> int:
        return len(self._scene.messages)
