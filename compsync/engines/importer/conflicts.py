"""Local conflict detector: the gate between resolution and any filesystem write."""

from __future__ import annotations

from pathlib import Path

import structlog

from compsync.engines.importer.models import ConflictRecord, ResolvedClosure, version_key
from compsync.exceptions import ConflictError
from compsync.workspace.fs import hash_on_disk
from compsync.workspace.workspace_map import WorkspaceMap

log = structlog.get_logger("compsync.engine")


def detect_conflicts(
    closure: ResolvedClosure,
    workspace_map: WorkspaceMap,
    workspace: Path,
) -> list[ConflictRecord]:
    """Compare every locally present component with what is on disk.

    ``local-modification``: the files recorded for the entry no longer hash
    to the recorded value (edited, or deleted). ``version-mismatch``: the
    workspace holds a newer version than the one resolved, so importing would
    silently downgrade it.
    """
    conflicts: list[ConflictRecord] = []
    seen: set[str] = set()
    for obj in closure.primary:
        entry = workspace_map.get(obj.id)
        if entry is None:
            continue
        if not entry.files:
            # no tracked files: the recorded hash cannot be checked against disk
            log.debug("conflicts.untracked_entry", component=str(obj.id), path=entry.path)
            modified = False
        else:
            modified = hash_on_disk(workspace / entry.path, entry.files) != entry.hash
        if modified:
            record = ConflictRecord(obj.id, "local-modification")
        elif entry.version and version_key(entry.version) > version_key(obj.id.version or ""):
            record = ConflictRecord(obj.id, "version-mismatch")
        else:
            continue
        # Two resolved versions of one component share a single entry.
        if obj.id.key in seen:
            continue
        seen.add(obj.id.key)
        conflicts.append(record)
        log.info("conflicts.detected", component=str(obj.id), reason=record.reason)
    return conflicts


def conflict_gate(
    closure: ResolvedClosure,
    workspace_map: WorkspaceMap,
    workspace: Path,
    *,
    override: bool,
) -> tuple[ConflictRecord, ...]:
    """Raise ``ConflictError`` listing every conflict unless *override* is set."""
    conflicts = detect_conflicts(closure, workspace_map, workspace)
    if conflicts and not override:
        raise ConflictError(conflicts)
    if conflicts:
        log.warning(
            "conflicts.overridden",
            components=[str(c.id) for c in conflicts],
        )
    return tuple(conflicts)
