"""State persistence — opaque snapshot storage behind a best-effort gateway."""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import PersistenceWarning
from .models import StateSnapshot

logger = logging.getLogger(__name__)

DEFAULT_STATE_KEY = "rhapsodyState"


def dump_snapshot(snapshot: StateSnapshot) -> str:
    return snapshot.model_dump_json(by_alias=True)


def parse_snapshot(payload: str) -> StateSnapshot:
    return StateSnapshot.model_validate_json(payload)


class StateStore(ABC):
    """Abstract key/value storage for the full state snapshot."""

    @abstractmethod
    def save(self, snapshot: StateSnapshot) -> None:
        """Persist *snapshot*, replacing any previous one."""

    @abstractmethod
    def load(self) -> StateSnapshot | None:
        """Return the stored snapshot, or ``None`` if nothing was saved yet."""


class InMemoryStateStore(StateStore):
    """Keeps the serialised snapshot in memory (for testing and development)."""

    def __init__(self) -> None:
        self.payload: str | None = None
        self.save_count = 0

    def save(self, snapshot: StateSnapshot) -> None:
        self.payload = dump_snapshot(snapshot)
        self.save_count += 1

    def load(self) -> StateSnapshot | None:
        if self.payload is None:
            return None
        return parse_snapshot(self.payload)


class JsonFileStateStore(StateStore):
    """Snapshot stored as one JSON document, replaced atomically on save."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, snapshot: StateSnapshot) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(dump_snapshot(snapshot))
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self) -> StateSnapshot | None:
        if not self._path.exists():
            return None
        return parse_snapshot(self._path.read_text(encoding="utf-8"))


class SqliteStateStore(StateStore):
    """SQLite-backed snapshot storage, one row per state key."""

    def __init__(self, db_path: Path | str, key: str = DEFAULT_STATE_KEY) -> None:
        self._db_path = str(db_path)
        self._key = key
        self._conn = sqlite3.connect(self._db_path)
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL
            )"""
        )
        self._conn.commit()

    def save(self, snapshot: StateSnapshot) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO state (key, value, updated_at) VALUES (?, ?, ?)",
            (self._key, dump_snapshot(snapshot), time.time()),
        )
        self._conn.commit()

    def load(self) -> StateSnapshot | None:
        row = self._conn.execute("SELECT value FROM state WHERE key = ?", (self._key,)).fetchone()
        return parse_snapshot(row[0]) if row else None

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()


class PersistenceGateway:
    """Best-effort wrapper around a :class:`StateStore`.

    In-memory state stays authoritative: failures are logged, remembered in
    :attr:`last_warning`, and never propagated.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self.last_warning: PersistenceWarning | None = None

    @property
    def store(self) -> StateStore:
        return self._store

    def save(self, snapshot: StateSnapshot) -> bool:
        try:
            self._store.save(snapshot)
        except Exception as exc:
            self.last_warning = PersistenceWarning(f"Failed to save state: {exc}")
            logger.warning("%s", self.last_warning)
            return False
        self.last_warning = None
        return True

    def load(self) -> StateSnapshot:
        try:
            snapshot = self._store.load()
        except Exception as exc:
            self.last_warning = PersistenceWarning(f"Failed to load state: {exc}")
            logger.warning("%s", self.last_warning)
            return StateSnapshot()
        return snapshot if snapshot is not None else StateSnapshot()
