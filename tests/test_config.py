"""Tests for config module — RhapsodyConfig defaults and environment loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from rhapsody.config import RhapsodyConfig

_ENV = (
    "RHAPSODY_API_KEY",
    "RHAPSODY_MAX_CONTEXT_TOKENS",
    "RHAPSODY_MODEL",
    "RHAPSODY_BASE_URL",
    "RHAPSODY_LLM_TIMEOUT_SEC",
    "RHAPSODY_STREAMING",
    "RHAPSODY_STATE_PATH",
    "RHAPSODY_JOURNAL_DIR",
    "RHAPSODY_SYSTEM",
    "RHAPSODY_WORLD",
    "RHAPSODY_LOCATION",
    "RHAPSODY_TRACE_EXPORTER",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults() -> None:
    config = RhapsodyConfig()
    assert config.api_key == ""
    assert config.max_context_tokens == 3000
    assert config.model == "deepseek-chat"
    assert config.base_url == "https://api.deepseek.com"
    assert config.streaming is True
    assert config.state_path is None
    assert config.trace_exporter == "none"


def test_rejects_non_positive_budget() -> None:
    with pytest.raises(ValueError, match="max_context_tokens"):
        RhapsodyConfig(max_context_tokens=0)


def test_table_info() -> None:
    table = RhapsodyConfig(system_info="Blades in the Dark", world_name="Doskvol").table
    assert table.system_info == "Blades in the Dark"
    assert table.world_name == "Doskvol"
    assert table.location_name == "Unknown Location"


def test_from_env_unset_keeps_defaults(clean_env: pytest.MonkeyPatch) -> None:
    assert RhapsodyConfig.from_env() == RhapsodyConfig()


def test_from_env_reads_variables(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("RHAPSODY_API_KEY", "sk-abc")
    clean_env.setenv("RHAPSODY_MAX_CONTEXT_TOKENS", "1200")
    clean_env.setenv("RHAPSODY_LLM_TIMEOUT_SEC", "5")
    clean_env.setenv("RHAPSODY_STREAMING", "false")
    clean_env.setenv("RHAPSODY_STATE_PATH", str(tmp_path / "state.json"))
    clean_env.setenv("RHAPSODY_WORLD", "Eberron")
    clean_env.setenv("RHAPSODY_TRACE_EXPORTER", "stdout")

    config = RhapsodyConfig.from_env()

    assert config.api_key == "sk-abc"
    assert config.max_context_tokens == 1200
    assert config.timeout == 5.0
    assert config.streaming is False
    assert config.state_path == tmp_path / "state.json"
    assert config.journal_dir is None
    assert config.world_name == "Eberron"
    assert config.trace_exporter == "stdout"


def test_from_env_invalid_budget(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("RHAPSODY_MAX_CONTEXT_TOKENS", "-5")
    with pytest.raises(ValueError):
        RhapsodyConfig.from_env()
