"""Local object store: a content-addressed cache of fetched component objects.

Layout under ``.compsync/objects``::

    <hash[:2]>/<hash>.json   serialized object, addressed by its content hash
    refs.json                "scope/name@version" → hash
"""

from __future__ import annotations

import json
from pathlib import Path

import pydantic
import structlog

from compsync.engines.importer.models import ComponentId, ComponentObject
from compsync.exceptions import WorkspaceError
from compsync.remote.payload import ComponentPayload
from compsync.workspace.fs import STATE_DIR, atomic_write_json, atomic_write_text

log = structlog.get_logger("compsync.workspace")


class ObjectStore:
    def __init__(self, workspace: Path) -> None:
        self.root = workspace / STATE_DIR / "objects"
        self._refs_path = self.root / "refs.json"

    def _object_path(self, digest: str) -> Path:
        return self.root / digest[:2] / f"{digest}.json"

    def _load_refs(self) -> dict[str, str]:
        if not self._refs_path.is_file():
            return {}
        return json.loads(self._refs_path.read_text(encoding="utf-8"))

    def put_many(self, objects: tuple[ComponentObject, ...] | list[ComponentObject]) -> int:
        """Store objects that are not cached yet; returns how many were added."""
        refs = self._load_refs()
        added = 0
        for obj in objects:
            path = self._object_path(obj.content_hash)
            ref = str(obj.id)
            if path.is_file() and refs.get(ref) == obj.content_hash:
                continue
            payload = ComponentPayload.from_object(obj)
            atomic_write_text(path, payload.model_dump_json(indent=2) + "\n")
            refs[ref] = obj.content_hash
            added += 1
        if added:
            atomic_write_json(self._refs_path, refs)
        log.debug("object_store.stored", added=added, total=len(objects))
        return added

    def get(self, cid: ComponentId) -> ComponentObject | None:
        if cid.version is None:
            return None
        digest = self._load_refs().get(str(cid))
        if digest is None:
            return None
        path = self._object_path(digest)
        if not path.is_file():
            return None
        try:
            payload = ComponentPayload.model_validate_json(path.read_text(encoding="utf-8"))
        except pydantic.ValidationError as exc:
            raise WorkspaceError(f"corrupt cached object {path}: {exc}") from exc
        return payload.to_object()
