"""Workspace writer: materializes the accepted closure.

Each component is staged in a temporary directory inside the workspace. A new
component directory is swapped into place in one rename. An existing one is
updated file by file: files the component ships are replaced, files it used to
ship are removed, and files it never owned are kept. The workspace map is
updated only after a component was written.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import structlog

from compsync.engines.importer.models import (
    ComponentId,
    ComponentObject,
    ConflictRecord,
    ImportDetails,
    ImportStatus,
    ResolvedClosure,
    WorkspaceEntry,
    version_key,
)
from compsync.engines.importer.options import ImportOptions
from compsync.exceptions import PackageInstallError, WorkspaceError
from compsync.workspace.fs import (
    STATE_DIR,
    replace_files,
    safe_join,
    staging_dir,
    swap_into_place,
    write_tree,
)
from compsync.workspace.installer import PackageInstaller, as_specifier
from compsync.workspace.objects import ObjectStore
from compsync.workspace.packages import installed_packages, normalize_name
from compsync.workspace.workspace_map import WorkspaceMap

log = structlog.get_logger("compsync.engine")

DEFAULT_COMPONENTS_DIR = "components"
DIST_DIR = "dist"
CONFIG_FILE = "component.json"
PACKAGE_DESCRIPTOR_FILE = "requirements.txt"


@dataclass(frozen=True)
class WriteOutcome:
    details: tuple[ImportDetails, ...]
    written: tuple[ComponentId, ...] = ()
    installed_packages: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


class WorkspaceWriter:
    def __init__(
        self,
        workspace: Path,
        workspace_map: WorkspaceMap,
        object_store: ObjectStore,
        installer: PackageInstaller | None = None,
        installed_provider: Callable[[], dict[str, str]] = installed_packages,
    ) -> None:
        self._workspace = workspace
        self._map = workspace_map
        self._objects = object_store
        self._installer = installer
        self._installed_provider = installed_provider

    async def write(
        self,
        closure: ResolvedClosure,
        conflicts: tuple[ConflictRecord, ...],
        options: ImportOptions,
    ) -> WriteOutcome:
        """Store objects, then (unless objects-only) write working copies."""
        self._objects.put_many(closure.primary + closure.environments)
        details = self._details(closure, conflicts)

        if not options.should_write:
            log.info(
                "writer.objects_only",
                objects=len(closure.primary) + len(closure.environments),
            )
            return WriteOutcome(details=details)

        status_by_id = {d.id: d.status for d in details}
        written: list[ComponentId] = []
        for obj in self._write_set(closure):
            if status_by_id.get(obj.id) == "up-to-date":
                log.debug("writer.up_to_date", component=str(obj.id))
                continue
            self._write_component(obj, options)
            written.append(obj.id)

        for env in closure.environments:
            target = self._workspace / STATE_DIR / "envs" / env.id.scope / env.id.name
            target = target / (env.id.version or "latest")
            self._materialize(env, target, options, owned=True)
            log.info("writer.environment_written", component=str(env.id), path=str(target))

        installed: tuple[str, ...] = ()
        warnings: list[str] = []
        if options.should_install_packages and written:
            try:
                installed = await self._install_packages(
                    [obj for obj in closure.primary if obj.id in set(written)]
                )
            except PackageInstallError as exc:
                log.warning("writer.install_failed", error=str(exc))
                warnings.append(f"package installation failed: {exc}")

        return WriteOutcome(
            details=details,
            written=tuple(written),
            installed_packages=installed,
            warnings=tuple(warnings),
        )

    # ── details ───────────────────────────────────────────────────────────

    def _details(
        self, closure: ResolvedClosure, conflicts: tuple[ConflictRecord, ...]
    ) -> tuple[ImportDetails, ...]:
        conflicted = {c.id.key for c in conflicts}
        details = []
        for obj in closure.primary:
            entry = self._map.get(obj.id)
            status: ImportStatus
            if obj.id.key in conflicted:
                status = "conflicted"
            elif (
                entry is not None
                and entry.version == obj.id.version
                and entry.hash == obj.content_hash
            ):
                status = "up-to-date"
            else:
                status = "imported"
            details.append(
                ImportDetails(
                    id=obj.id,
                    version=obj.id.version or "",
                    status=status,
                    dependency=not closure.is_requested(obj),
                )
            )
        return tuple(details)

    # ── component writes ──────────────────────────────────────────────────

    def _write_set(self, closure: ResolvedClosure) -> list[ComponentObject]:
        """One object per scope/name: the requested version, else the newest."""
        chosen: dict[str, ComponentObject] = {}
        for obj in closure.primary:
            current = chosen.get(obj.id.key)
            if current is None:
                chosen[obj.id.key] = obj
                continue
            if closure.is_requested(current) and not closure.is_requested(obj):
                continue
            if closure.is_requested(obj) and not closure.is_requested(current):
                chosen[obj.id.key] = obj
            elif version_key(obj.id.version or "") > version_key(current.id.version or ""):
                chosen[obj.id.key] = obj
        return list(chosen.values())

    def _target_path(self, obj: ComponentObject, options: ImportOptions) -> str:
        entry = self._map.get(obj.id)
        if entry is not None:
            return entry.path
        if options.write_to_path:
            return str(Path(options.write_to_path) / obj.id.name)
        return str(Path(DEFAULT_COMPONENTS_DIR) / obj.id.name)

    def _resolve_target(self, obj: ComponentObject, rel_path: str) -> Path:
        try:
            target = safe_join(self._workspace, rel_path)
        except ValueError as exc:
            raise WorkspaceError(f"invalid path for {obj.id}: {exc}") from exc
        if not Path(rel_path).parts:
            raise WorkspaceError(
                f"refusing to write {obj.id} into the workspace root; "
                "give it its own directory in the workspace map"
            )
        return target

    def _write_component(self, obj: ComponentObject, options: ImportOptions) -> None:
        rel_path = self._target_path(obj, options)
        target = self._resolve_target(obj, rel_path)
        previous = self._map.get(obj.id)
        stale = set(previous.files) - set(obj.files) if previous is not None else set()
        self._materialize(obj, target, options, stale=sorted(stale))

        self._map.record(
            WorkspaceEntry(
                id=obj.id,
                path=Path(rel_path).as_posix(),
                hash=obj.content_hash,
                files=tuple(sorted(obj.files)),
                origin=previous.origin if previous is not None else "imported",
            )
        )
        log.info("writer.component_written", component=str(obj.id), path=rel_path)

    def _materialize(
        self,
        obj: ComponentObject,
        target: Path,
        options: ImportOptions,
        *,
        stale: list[str] | None = None,
        owned: bool = False,
    ) -> None:
        """Write *obj* to *target*.

        ``owned`` targets (environments) are replaced as a whole directory.
        """
        staged = staging_dir(self._workspace)
        try:
            write_tree(staged, dict(obj.files))
            generated = self._generated_files(obj, options)
            write_tree(staged, {p: c for p, c in generated.items() if p not in obj.files})
            if owned or not target.exists():
                swap_into_place(staged, target)
            else:
                replace_files(staged, target, stale or ())
        except (OSError, ValueError) as exc:
            raise WorkspaceError(f"failed to write {obj.id} to {target}: {exc}") from exc
        finally:
            if staged.exists():
                shutil.rmtree(staged, ignore_errors=True)

    @staticmethod
    def _generated_files(obj: ComponentObject, options: ImportOptions) -> dict[str, str]:
        generated: dict[str, str] = {}
        if options.write_dists:
            for rel, content in obj.dists.items():
                generated[f"{DIST_DIR}/{rel}"] = content
        if options.write_config:
            config = {
                "id": str(obj.id),
                "dependencies": [str(d) for d in obj.dependencies],
                "dev_dependencies": [str(d) for d in obj.dev_dependencies],
                "packages": dict(obj.packages),
                "compiler": str(obj.compiler) if obj.compiler else None,
                "tester": str(obj.tester) if obj.tester else None,
            }
            generated[CONFIG_FILE] = json.dumps(config, indent=2) + "\n"
        if options.write_package_descriptor and obj.packages:
            lines = [f"{name}{as_specifier(spec)}" for name, spec in sorted(obj.packages.items())]
            generated[PACKAGE_DESCRIPTOR_FILE] = "\n".join(lines) + "\n"
        return generated

    # ── packages ──────────────────────────────────────────────────────────

    async def _install_packages(self, objects: list[ComponentObject]) -> tuple[str, ...]:
        if self._installer is None:
            return ()
        present = self._installed_provider()
        missing: dict[str, str] = {}
        for obj in objects:
            for name, spec in obj.packages.items():
                if normalize_name(name) not in present:
                    missing.setdefault(name, spec)
        if not missing:
            return ()
        await self._installer.install(missing)
        return tuple(sorted(missing))

