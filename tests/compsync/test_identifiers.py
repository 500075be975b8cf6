"""Tests for identifier resolution from arguments, manifest and workspace map."""

from __future__ import annotations

from compsync.engines.importer.identifiers import resolve_identifiers
from compsync.engines.importer.models import ComponentId, WorkspaceEntry
from compsync.engines.importer.options import EnvironmentOptions, ImportOptions
from compsync.workspace.manifest import Manifest
from compsync.workspace.workspace_map import WorkspaceMap


def _map(tmp_path, *ids: str | ComponentId) -> WorkspaceMap:
    entries = {}
    for raw in ids:
        cid = raw if isinstance(raw, ComponentId) else ComponentId.parse(raw)
        entries[cid.key] = WorkspaceEntry(id=cid, path=f"components/{cid.name}", hash="h")
    return WorkspaceMap(tmp_path / "map.json", entries)


class TestExplicitIds:
    def test_parses_and_dedups(self, tmp_path):
        options = ImportOptions(ids=("remote/bar/foo@0.0.1", "remote/bar/foo@0.0.1", "remote/x"))

        request = resolve_identifiers(options, Manifest(), _map(tmp_path))

        assert request.ids == (
            ComponentId("remote", "bar/foo", "0.0.1"),
            ComponentId("remote", "x"),
        )
        assert not request.import_all

    def test_manifest_ignored_when_ids_given(self, tmp_path):
        manifest = Manifest(components=(ComponentId("remote", "other", "1.0.0"),))
        options = ImportOptions(ids=("remote/x",))

        request = resolve_identifiers(options, manifest, _map(tmp_path))

        assert request.ids == (ComponentId("remote", "x"),)

    def test_environment_passed_through(self, tmp_path):
        options = ImportOptions(
            ids=("remote/envs/babel",), environment=EnvironmentOptions(compiler=True)
        )

        request = resolve_identifiers(options, Manifest(), _map(tmp_path))

        assert request.environment.category == "compiler"


class TestImportAll:
    def test_manifest_then_map(self, tmp_path):
        manifest = Manifest(components=(ComponentId("remote", "bar/foo", "0.0.1"),))
        wmap = _map(tmp_path, "remote/utils/pad@1.0.0")

        request = resolve_identifiers(ImportOptions(), manifest, wmap)

        assert request.import_all
        assert request.ids == (
            ComponentId("remote", "bar/foo", "0.0.1"),
            ComponentId("remote", "utils/pad", "1.0.0"),
        )

    def test_manifest_version_wins_over_map(self, tmp_path):
        manifest = Manifest(components=(ComponentId("remote", "bar/foo", "0.0.2"),))
        wmap = _map(tmp_path, "remote/bar/foo@0.0.1")

        request = resolve_identifiers(ImportOptions(), manifest, wmap)

        assert request.ids == (ComponentId("remote", "bar/foo", "0.0.2"),)

    def test_unexported_skipped(self, tmp_path):
        wmap = _map(tmp_path, ComponentId("", "bar/foo", "0.0.1"))

        request = resolve_identifiers(ImportOptions(), Manifest(), wmap)

        assert request.ids == ()
        assert request.skipped == (ComponentId("", "bar/foo", "0.0.1"),)

    def test_empty_workspace(self, tmp_path):
        request = resolve_identifiers(ImportOptions(), Manifest(), _map(tmp_path))

        assert request.ids == ()
        assert request.skipped == ()
