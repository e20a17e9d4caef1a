"""Context builder — assembles the role-tagged turns sent to the language model."""

from __future__ import annotations

from dataclasses import dataclass

from .markup import strip_html
from .message_store import recent_messages
from .models import Message, Scene, Sender
from .provider import ChatMessage, ChatRole


@dataclass(frozen=True)
class TableInfo:
    """Where the game is being played: rules system, campaign and location."""

    system_info: str = "Unknown System"
    world_name: str = "Unknown World"
    location_name: str = "Unknown Location"


_PERSONA = """You are a helpful GM assistant specifically for {system}.
You are currently helping with the campaign "{world}".
The party is currently at: {location}.

Important: Keep all responses appropriate for {system} rules, mechanics, and setting.
Use system-specific terminology and follow the game's conventions."""


def _role_for(message: Message) -> ChatRole:
    return ChatRole.USER if message.sender == Sender.USER else ChatRole.ASSISTANT


class ContextBuilder:
    """Builds the outgoing message list for a chat turn.

    Order is fixed: one system turn, then every pinned message, then the
    unpinned messages of the recent window. Loading placeholders and the
    compression marker are never emitted.
    """

    def build_system_prompt(
        self,
        scene_history: list[Scene],
        system_info: str,
        world_name: str,
        location_name: str,
        context_summary: str = "",
    ) -> str:
        parts = [_PERSONA.format(system=system_info, world=world_name, location=location_name)]
        if context_summary:
            parts.append(f"Context from earlier in scene: {context_summary}")
        if scene_history:
            previous = strip_html(scene_history[-1].summary or "")
            parts.append(f"Previous scene summary: {previous}")
        return "\n\n".join(parts)

    def build(
        self,
        messages: list[Message],
        scene_history: list[Scene],
        system_info: str,
        world_name: str,
        location_name: str,
        context_summary: str = "",
    ) -> list[ChatMessage]:
        turns = [
            ChatMessage(
                role=ChatRole.SYSTEM,
                content=self.build_system_prompt(
                    scene_history, system_info, world_name, location_name, context_summary
                ),
            )
        ]

        for message in messages:
            if message.is_pinned and not message.is_loading and not message.is_marker:
                turns.append(ChatMessage(role=_role_for(message), content=strip_html(message.content)))

        for message in recent_messages(messages):
            if message.is_pinned or message.is_loading or message.is_marker:
                continue
            turns.append(ChatMessage(role=_role_for(message), content=strip_html(message.content)))

        return turns
