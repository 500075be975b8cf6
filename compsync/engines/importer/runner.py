"""ImportRunner: orchestrates resolve → fetch → closure → gate → write → audit."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import structlog

from compsync.core.config import Settings
from compsync.engines.importer.auditor import audit_dependencies, required_packages
from compsync.engines.importer.closure import build_closure
from compsync.engines.importer.conflicts import conflict_gate
from compsync.engines.importer.fetcher import ObjectFetcher
from compsync.engines.importer.identifiers import resolve_identifiers
from compsync.engines.importer.models import ImportDetails, ImportResult, ResolvedClosure
from compsync.engines.importer.options import ImportOptions
from compsync.engines.importer.writer import WorkspaceWriter
from compsync.exceptions import InvariantError, NothingToImportError
from compsync.remote.registry import RemoteRegistry
from compsync.workspace.installer import PackageInstaller, PipInstaller
from compsync.workspace.lock import WorkspaceLock
from compsync.workspace.manifest import load_manifest
from compsync.workspace.objects import ObjectStore
from compsync.workspace.packages import declared_packages, installed_packages
from compsync.workspace.workspace_map import WorkspaceMap

log = structlog.get_logger("compsync.engine")


class ImportRunner:
    """Runs one import against a workspace.

    Network stages run first and never touch the workspace; the conflict gate
    then inspects the whole batch before the first write. The workspace lock
    is held for the entire operation.
    """

    def __init__(
        self,
        workspace: Path,
        *,
        settings: Settings | None = None,
        registry: RemoteRegistry | None = None,
        installer: PackageInstaller | None = None,
        installed_provider: Callable[[], dict[str, str]] = installed_packages,
    ) -> None:
        self._workspace = workspace
        self._settings = settings or Settings()
        self._registry = registry
        self._installer = installer
        self._installed_provider = installed_provider

    async def run(self, options: ImportOptions) -> ImportResult:
        async with WorkspaceLock(self._workspace):
            return await self._run_locked(options)

    async def _run_locked(self, options: ImportOptions) -> ImportResult:
        manifest = load_manifest(self._workspace)
        workspace_map = WorkspaceMap.load(self._workspace)
        request = resolve_identifiers(options, manifest, workspace_map)

        warnings = [f"{cid} was never exported, skipping" for cid in request.skipped]
        objects = ObjectStore(self._workspace)

        owns_registry = self._registry is None
        registry = self._registry or RemoteRegistry(
            manifest.remotes, self._settings, base_dir=self._workspace
        )
        try:
            fetcher = ObjectFetcher(registry, self._settings.fetch_concurrency, cache=objects)
            try:
                seeds = await fetcher.fetch(request.ids)
            except NothingToImportError as exc:
                warnings.extend(f.message for f in exc.failures)
                log.info("runner.nothing_to_import", requested=[str(i) for i in request.ids])
                return ImportResult(warnings=tuple(warnings), objects_only=not options.should_write)

            closure = await build_closure(
                fetcher,
                seeds,
                request.ids,
                environment=request.environment,
                with_environments=options.with_environments,
                ambiguity_policy=self._settings.ambiguity_policy,
            )
        finally:
            if owns_registry:
                await registry.close()

        warnings.extend(f.message for f in closure.failures)
        warnings.extend(
            f"multiple versions of {a.key} are required: {', '.join(a.versions)}"
            for a in closure.ambiguities
        )

        conflicts = conflict_gate(
            closure, workspace_map, self._workspace, override=options.override
        )

        installer = self._installer
        if installer is None:
            installer = PipInstaller(extra_args=list(options.package_manager_args))
        writer = WorkspaceWriter(
            self._workspace,
            workspace_map,
            objects,
            installer,
            self._installed_provider,
        )
        outcome = await writer.write(closure, conflicts, options)
        warnings.extend(outcome.warnings)
        _check_details(closure, outcome.details)

        audit = audit_dependencies(
            required_packages(closure.primary),
            declared_packages(self._workspace),
            self._installed_provider(),
        )

        log.info(
            "runner.completed",
            components=len(outcome.details),
            written=len(outcome.written),
            environments=len(closure.environments),
            conflicts=len(conflicts),
        )
        return ImportResult(
            details=outcome.details,
            closure=closure,
            audit=audit,
            conflicts=conflicts,
            warnings=tuple(warnings),
            objects_only=not options.should_write,
            installed_packages=outcome.installed_packages,
        )


def _check_details(closure: ResolvedClosure, details: tuple[ImportDetails, ...]) -> None:
    detailed = {d.id for d in details}
    for obj in closure.primary:
        if obj.id not in detailed:
            raise InvariantError(f"missing details of component {obj.id}")


async def import_components(
    workspace: Path,
    options: ImportOptions,
    *,
    settings: Settings | None = None,
    installer: PackageInstaller | None = None,
) -> ImportResult:
    """Convenience entry point: run one import with default collaborators."""
    runner = ImportRunner(workspace, settings=settings or Settings.from_env(), installer=installer)
    return await runner.run(options)
