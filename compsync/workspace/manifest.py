"""Workspace manifest (``compsync.toml``) reader.

Only the logical fields the import engine needs are read::

    [remotes]
    remote = "https://components.example.com/remote"
    local-scope = "file:///srv/scopes/local-scope"

    [components]
    "remote/bar/foo" = "0.0.1"
    "remote/utils/is-string" = "*"
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from compsync.engines.importer.models import ComponentId, normalize_version
from compsync.exceptions import ConfigurationError, WorkspaceError

MANIFEST_FILE = "compsync.toml"


@dataclass(frozen=True)
class Manifest:
    components: tuple[ComponentId, ...] = ()
    remotes: dict[str, str] = field(default_factory=dict)


def load_manifest(workspace: Path) -> Manifest:
    """Read the manifest; a missing file is an empty manifest."""
    path = workspace / MANIFEST_FILE
    if not path.is_file():
        return Manifest()
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise WorkspaceError(f"invalid {MANIFEST_FILE}: {exc}") from exc

    remotes = data.get("remotes", {})
    if not isinstance(remotes, dict) or not all(isinstance(v, str) for v in remotes.values()):
        raise WorkspaceError(f"[remotes] in {MANIFEST_FILE} must map scope names to URLs")

    declared = data.get("components", {})
    if not isinstance(declared, dict):
        raise WorkspaceError(f"[components] in {MANIFEST_FILE} must be a table")

    components: list[ComponentId] = []
    for raw_id, version in declared.items():
        if not isinstance(version, str):
            raise WorkspaceError(f"version of {raw_id!r} in {MANIFEST_FILE} must be a string")
        try:
            cid = ComponentId.parse(raw_id)
        except ConfigurationError as exc:
            raise WorkspaceError(str(exc)) from exc
        components.append(cid.with_version(normalize_version(version)))

    return Manifest(components=tuple(components), remotes=dict(remotes))
