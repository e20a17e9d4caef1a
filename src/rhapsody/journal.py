"""Scene journal records — the external document written when a scene ends."""

from __future__ import annotations

import html
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from .context import TableInfo
from .models import Scene, Session, new_id, now

logger = logging.getLogger(__name__)

JOURNAL_FOLDER = "Rhapsody Sessions"
_METADATA_TAG = "RHAPSODY_METADATA"


@dataclass
class DocumentHandle:
    """Reference to a created journal record."""

    document_id: str
    name: str
    folder: str
    location: str | None = None


def scene_metadata(scene: Scene, session: Session | None) -> dict[str, object]:
    """Hidden metadata embedded in every record for later lookup."""
    return {
        "sessionId": session.id if session else None,
        "sessionNumber": session.number if session else None,
        "sceneNumber": scene.number,
        "timestamp": scene.start_time.isoformat(),
    }


def render_scene_document(scene: Scene, session: Session | None, table: TableInfo) -> str:
    """Render the HTML page stored for an archived scene."""
    metadata = json.dumps(scene_metadata(scene, session))
    parts = [
        f"<!-- {_METADATA_TAG}: {metadata} -->",
        f"<h2>{html.escape(scene.name)}</h2>",
        f"<p><em>Started: {scene.start_time:%Y-%m-%d %H:%M:%S}</em></p>",
        (
            f"<p><strong>System:</strong> {html.escape(table.system_info)} | "
            f"<strong>Location:</strong> {html.escape(table.location_name)}</p>"
        ),
    ]
    if session is not None:
        parts.append(
            f"<p><strong>Session:</strong> {html.escape(session.name)} | "
            f"<strong>Scene:</strong> {scene.number}</p>"
        )
    parts.append("<hr>")
    if scene.summary:
        parts.append(f"<div>{scene.summary}</div>")
    return "\n".join(parts)


def folder_for(session: Session | None, table: TableInfo) -> str:
    """Session records live under the journal folder, loose scenes under the world."""
    if session is not None:
        return f"{JOURNAL_FOLDER}/{session.name}"
    return f"{table.world_name}/{JOURNAL_FOLDER}"


class DocumentSink(ABC):
    """Creates external journal records for completed scenes."""

    @abstractmethod
    def create_scene_record(
        self, scene: Scene, session: Session | None, table: TableInfo
    ) -> DocumentHandle:
        """Write a record for *scene* and return a handle to it."""


@dataclass
class StoredDocument:
    handle: DocumentHandle
    content: str


class InMemoryDocumentSink(DocumentSink):
    """Keeps rendered records in a list (for testing and development)."""

    def __init__(self) -> None:
        self.documents: list[StoredDocument] = []

    def create_scene_record(
        self, scene: Scene, session: Session | None, table: TableInfo
    ) -> DocumentHandle:
        handle = DocumentHandle(document_id=new_id(), name=scene.name, folder=folder_for(session, table))
        self.documents.append(StoredDocument(handle=handle, content=render_scene_document(scene, session, table)))
        return handle


_UNSAFE = re.compile(r"[^\w\- ]+")


def _safe_name(name: str) -> str:
    cleaned = _UNSAFE.sub("_", name).strip()
    return cleaned or "untitled"


class FileDocumentSink(DocumentSink):
    """Writes each record as an HTML file in a per-session folder."""

    def __init__(self, base_dir: Path | str) -> None:
        self._base = Path(base_dir)
        self._base.mkdir(parents=True, exist_ok=True)

    def create_scene_record(
        self, scene: Scene, session: Session | None, table: TableInfo
    ) -> DocumentHandle:
        folder = folder_for(session, table)
        directory = self._base.joinpath(*(_safe_name(p) for p in folder.split("/")))
        directory.mkdir(parents=True, exist_ok=True)

        stem = _safe_name(scene.name)
        path = directory / f"{stem}.html"
        if path.exists():
            path = directory / f"{stem}-{now():%Y%m%d%H%M%S}-{new_id()[:4]}.html"
        path.write_text(render_scene_document(scene, session, table), encoding="utf-8")
        logger.info("Wrote journal record %s", path)
        return DocumentHandle(document_id=path.stem, name=scene.name, folder=folder, location=str(path))
