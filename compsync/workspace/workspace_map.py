"""Workspace map (``.compsync.map.json``): where each component lives locally."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from compsync.engines.importer.models import ComponentId, WorkspaceEntry
from compsync.exceptions import WorkspaceError
from compsync.workspace.fs import atomic_write_json

log = structlog.get_logger("compsync.workspace")

MAP_FILE = ".compsync.map.json"

_REQUIRED_FIELDS = ("name", "path", "hash", "files")


class WorkspaceMap:
    """In-memory view of the workspace map, keyed by ``scope/name``.

    Only the workspace writer calls :meth:`record`; each call persists the
    whole map atomically so it never references a path that was not written.
    """

    def __init__(self, path: Path, entries: dict[str, WorkspaceEntry] | None = None) -> None:
        self.path = path
        self._entries: dict[str, WorkspaceEntry] = dict(entries or {})

    @classmethod
    def load(cls, workspace: Path) -> WorkspaceMap:
        path = workspace / MAP_FILE
        if not path.is_file():
            return cls(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise WorkspaceError(f"invalid {MAP_FILE}: {exc}") from exc
        if not isinstance(raw, dict):
            raise WorkspaceError(f"{MAP_FILE} must contain a JSON object")
        entries = {}
        for key, item in raw.items():
            entry = _entry_from_json(key, item)
            entries[entry.id.key] = entry
        return cls(path, entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, cid: ComponentId) -> WorkspaceEntry | None:
        return self._entries.get(cid.key)

    def entries(self) -> list[WorkspaceEntry]:
        return list(self._entries.values())

    def record(self, entry: WorkspaceEntry) -> None:
        self._entries[entry.id.key] = entry
        self.save()
        log.debug("workspace_map.recorded", component=str(entry.id), path=entry.path)

    def save(self) -> None:
        atomic_write_json(
            self.path, {key: _entry_to_json(e) for key, e in self._entries.items()}
        )


def _entry_from_json(key: str, item: Any) -> WorkspaceEntry:
    if not isinstance(item, dict) or any(f not in item for f in _REQUIRED_FIELDS):
        raise WorkspaceError(
            f"entry {key!r} in {MAP_FILE} must have fields: {', '.join(_REQUIRED_FIELDS)}"
        )
    files = item["files"]
    if not isinstance(files, list):
        raise WorkspaceError(f"entry {key!r} in {MAP_FILE}: 'files' must be a list")
    origin = item.get("origin", "imported")
    if origin not in ("authored", "imported"):
        raise WorkspaceError(f"entry {key!r} in {MAP_FILE}: unknown origin {origin!r}")
    return WorkspaceEntry(
        id=ComponentId(
            scope=item.get("scope") or "",
            name=item["name"],
            version=item.get("version"),
        ),
        path=item["path"],
        hash=item["hash"],
        files=tuple(files),
        origin=origin,
    )


def _entry_to_json(entry: WorkspaceEntry) -> dict[str, Any]:
    return {
        "scope": entry.id.scope or None,
        "name": entry.id.name,
        "version": entry.id.version,
        "path": entry.path,
        "hash": entry.hash,
        "files": list(entry.files),
        "origin": entry.origin,
    }
