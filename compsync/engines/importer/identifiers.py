"""Identifier resolver: requested strings or workspace declarations → ComponentIds."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from compsync.engines.importer.models import ComponentId
from compsync.engines.importer.options import EnvironmentOptions, ImportOptions
from compsync.workspace.manifest import Manifest
from compsync.workspace.workspace_map import WorkspaceMap

log = structlog.get_logger("compsync.engine")


@dataclass(frozen=True)
class ResolvedRequest:
    ids: tuple[ComponentId, ...]
    environment: EnvironmentOptions
    import_all: bool
    skipped: tuple[ComponentId, ...] = ()


def resolve_identifiers(
    options: ImportOptions,
    manifest: Manifest,
    workspace_map: WorkspaceMap,
) -> ResolvedRequest:
    """Canonicalize and de-duplicate the requested identifiers.

    With no explicit ids every component declared in the manifest, then every
    component recorded in the workspace map that the manifest does not declare,
    is requested. Map entries that were never exported (no scope) cannot be
    fetched and are skipped.
    """
    if options.ids:
        candidates = [ComponentId.parse(raw) for raw in options.ids]
    else:
        candidates = list(manifest.components)
        declared = {cid.key for cid in candidates}
        # The manifest pins the version of what it declares; map entries only
        # add components the manifest does not mention.
        candidates.extend(
            entry.id for entry in workspace_map.entries() if entry.id.key not in declared
        )

    ids: list[ComponentId] = []
    skipped: list[ComponentId] = []
    seen: set[ComponentId] = set()
    for cid in candidates:
        if cid in seen:
            continue
        seen.add(cid)
        if not cid.is_exported:
            log.info("resolver.skip_unexported", component=str(cid))
            skipped.append(cid)
            continue
        ids.append(cid)

    log.debug(
        "resolver.resolved",
        requested=[str(i) for i in ids],
        import_all=options.import_all,
        category=options.environment.category,
    )
    return ResolvedRequest(
        ids=tuple(ids),
        environment=options.environment,
        import_all=options.import_all,
        skipped=tuple(skipped),
    )
