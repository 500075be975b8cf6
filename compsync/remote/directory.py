"""A scope stored as plain files, for local scopes and air-gapped mirrors.

Layout::

    <root>/<name>/<version>.json     e.g. <root>/bar/foo/0.0.1.json
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pydantic
import structlog

from compsync.engines.importer.models import ComponentId, ComponentObject, version_key
from compsync.exceptions import NetworkError
from compsync.remote.payload import ComponentPayload

log = structlog.get_logger("compsync.remote")


class DirectoryScopeStore:
    def __init__(
        self, scope: str, root: Path, *, known_scopes: frozenset[str] = frozenset()
    ) -> None:
        self.scope = scope
        self.root = root
        self.known_scopes = known_scopes

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> DirectoryScopeStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def versions(self, name: str) -> list[str]:
        """Published versions of *name*, oldest first."""
        base = self.root / name
        if not base.is_dir():
            return []
        return sorted((p.stem for p in base.glob("*.json") if p.is_file()), key=version_key)

    async def get(self, cid: ComponentId) -> ComponentObject | None:
        if not self.root.is_dir():
            raise NetworkError(f"scope {self.scope} is not reachable at {self.root}")
        version = cid.version
        if version is None:
            published = self.versions(cid.name)
            if not published:
                return None
            version = published[-1]
        path = self.root / cid.name / f"{version}.json"
        if not path.is_file():
            return None
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        try:
            payload = ComponentPayload.model_validate_json(text)
        except pydantic.ValidationError as exc:
            raise NetworkError(
                f"scope {self.scope} has a malformed object at {path}: {exc}"
            ) from exc
        return payload.to_object(self.known_scopes)

    def publish(self, obj: ComponentObject) -> Path:
        """Write *obj* into the scope (used by export tooling and tests)."""
        path = self.root / obj.id.name / f"{obj.id.version}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            ComponentPayload.from_object(obj).model_dump_json(indent=2) + "\n", encoding="utf-8"
        )
        log.debug("scope.published", scope=self.scope, component=str(obj.id))
        return path
