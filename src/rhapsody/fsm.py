"""Finite State Machine for a single chat turn."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class TurnPhase(StrEnum):
    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_COMPRESSION = "awaiting_compression"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    FAILED = "failed"


# Valid phase transitions for one user turn
_TRANSITIONS: dict[TurnPhase, list[TurnPhase]] = {
    TurnPhase.IDLE: [TurnPhase.VALIDATING],
    TurnPhase.VALIDATING: [TurnPhase.AWAITING_COMPRESSION, TurnPhase.IDLE],  # idle = refused
    TurnPhase.AWAITING_COMPRESSION: [TurnPhase.STREAMING, TurnPhase.FAILED],
    TurnPhase.STREAMING: [TurnPhase.FINALIZING, TurnPhase.FAILED],
    TurnPhase.FINALIZING: [TurnPhase.IDLE, TurnPhase.FAILED],
    TurnPhase.FAILED: [TurnPhase.IDLE],
}


class TurnState(BaseModel):
    phase: TurnPhase = TurnPhase.IDLE
    chunk_count: int = 0

    @property
    def is_busy(self) -> bool:
        return self.phase != TurnPhase.IDLE

    def can_transition(self, target: TurnPhase) -> bool:
        return target in _TRANSITIONS.get(self.phase, [])

    def transition(self, target: TurnPhase) -> TurnState:
        if not self.can_transition(target):
            raise ValueError(f"Invalid transition: {self.phase} -> {target}")
        chunks = self.chunk_count if target != TurnPhase.VALIDATING else 0
        return TurnState(phase=target, chunk_count=chunks)
