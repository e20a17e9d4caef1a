"""Operator collaborator — confirmations, summary editing and notifications."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum


class NoticeLevel(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Operator(ABC):
    """The single human driving the session."""

    @abstractmethod
    async def confirm(self, content: str, title: str = "Confirm Action") -> bool:
        """Ask a yes/no question."""

    @abstractmethod
    async def edit_text(self, text: str, title: str = "Edit Scene Summary") -> str | None:
        """Present *text* for review. Returns the edited text, or ``None`` on cancel."""

    @abstractmethod
    def notify(self, level: NoticeLevel, text: str) -> None:
        """Show a transient notification."""


class ScriptedOperator(Operator):
    """Answers from fixed settings and records every notification.

    Used for tests and unattended runs. Summaries are accepted unchanged
    unless ``cancel_edits`` is set or ``edited_summary`` overrides the text.
    """

    def __init__(
        self,
        confirm: bool = True,
        cancel_edits: bool = False,
        edited_summary: str | None = None,
    ) -> None:
        self.confirm_answer = confirm
        self.cancel_edits = cancel_edits
        self.edited_summary = edited_summary
        self.confirmations: list[str] = []
        self.notices: list[tuple[NoticeLevel, str]] = []

    async def confirm(self, content: str, title: str = "Confirm Action") -> bool:
        self.confirmations.append(content)
        return self.confirm_answer

    async def edit_text(self, text: str, title: str = "Edit Scene Summary") -> str | None:
        if self.cancel_edits:
            return None
        return self.edited_summary if self.edited_summary is not None else text

    def notify(self, level: NoticeLevel, text: str) -> None:
        self.notices.append((level, text))

    def messages(self, level: NoticeLevel | None = None) -> list[str]:
        return [text for lvl, text in self.notices if level is None or lvl == level]


class ConsoleOperator(Operator):
    """Talks to the operator over stdin/stdout."""

    async def confirm(self, content: str, title: str = "Confirm Action") -> bool:
        answer = input(f"{title}: {content} [y/N] ").strip().lower()
        return answer in ("y", "yes")

    async def edit_text(self, text: str, title: str = "Edit Scene Summary") -> str | None:
        print(f"--- {title} ---")
        print(text)
        print("--- end ---")
        answer = input("Save this summary? [Y]es / [e]dit / [c]ancel: ").strip().lower()
        if answer in ("c", "cancel"):
            return None
        if answer in ("e", "edit"):
            print("Enter the new summary, finish with a single '.' line:")
            lines: list[str] = []
            while (line := input()) != ".":
                lines.append(line)
            return "\n".join(lines)
        return text

    def notify(self, level: NoticeLevel, text: str) -> None:
        print(f"[{level}] {text}")
