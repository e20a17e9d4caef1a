"""Runtime configuration, passed into constructors rather than looked up globally."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .context import TableInfo
from .context_compression import DEFAULT_MAX_CONTEXT_TOKENS


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_path(name: str) -> Path | None:
    value = os.environ.get(name, "").strip()
    return Path(value) if value else None


@dataclass
class RhapsodyConfig:
    """Settings for one running assistant."""

    api_key: str = ""
    max_context_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS
    model: str = "deepseek-chat"
    base_url: str = "https://api.deepseek.com"
    timeout: float = 60.0
    streaming: bool = True
    state_path: Path | None = None
    journal_dir: Path | None = None
    system_info: str = "Unknown System"
    world_name: str = "Unknown World"
    location_name: str = "Unknown Location"
    trace_exporter: str = "none"  # "stdout" | "otlp" | "none"

    def __post_init__(self) -> None:
        if self.max_context_tokens <= 0:
            msg = f"max_context_tokens must be positive, got {self.max_context_tokens}"
            raise ValueError(msg)

    @property
    def table(self) -> TableInfo:
        return TableInfo(
            system_info=self.system_info,
            world_name=self.world_name,
            location_name=self.location_name,
        )

    @classmethod
    def from_env(cls) -> RhapsodyConfig:
        """Build a config from ``RHAPSODY_*`` environment variables.

        Unset variables keep the dataclass defaults.
        """
        defaults = cls()
        return cls(
            api_key=os.environ.get("RHAPSODY_API_KEY", defaults.api_key),
            max_context_tokens=int(
                os.environ.get("RHAPSODY_MAX_CONTEXT_TOKENS", str(defaults.max_context_tokens))
            ),
            model=os.environ.get("RHAPSODY_MODEL", defaults.model),
            base_url=os.environ.get("RHAPSODY_BASE_URL", defaults.base_url),
            timeout=float(os.environ.get("RHAPSODY_LLM_TIMEOUT_SEC", str(defaults.timeout))),
            streaming=_env_bool("RHAPSODY_STREAMING", defaults.streaming),
            state_path=_env_path("RHAPSODY_STATE_PATH"),
            journal_dir=_env_path("RHAPSODY_JOURNAL_DIR"),
            system_info=os.environ.get("RHAPSODY_SYSTEM", defaults.system_info),
            world_name=os.environ.get("RHAPSODY_WORLD", defaults.world_name),
            location_name=os.environ.get("RHAPSODY_LOCATION", defaults.location_name),
            trace_exporter=os.environ.get("RHAPSODY_TRACE_EXPORTER", defaults.trace_exporter),
        )
