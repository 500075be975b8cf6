"""Shared fixtures for compsync tests.

Remote scopes are plain directories (``DirectoryScopeStore``) under
``tmp_path``, so the whole pipeline runs without a network.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from compsync.engines.importer.models import ComponentId, ComponentObject
from compsync.remote.directory import DirectoryScopeStore


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_object():
    """Factory for ComponentObjects from short string ids."""

    def _make(
        raw_id: str,
        *,
        files: dict[str, str] | None = None,
        deps: tuple[str, ...] = (),
        dev_deps: tuple[str, ...] = (),
        packages: dict[str, str] | None = None,
        dists: dict[str, str] | None = None,
        compiler: str | None = None,
        tester: str | None = None,
    ) -> ComponentObject:
        cid = ComponentId.parse(raw_id)
        leaf = cid.name.rsplit("/", 1)[-1]
        return ComponentObject(
            id=cid,
            files=files or {f"{leaf}.js": f"module.exports = function {leaf}() {{}};\n"},
            dependencies=tuple(ComponentId.parse(d) for d in deps),
            dev_dependencies=tuple(ComponentId.parse(d) for d in dev_deps),
            packages=packages or {},
            dists=dists or {},
            compiler=ComponentId.parse(compiler) if compiler else None,
            tester=ComponentId.parse(tester) if tester else None,
        )

    return _make


@pytest.fixture
def scopes_root(tmp_path: Path) -> Path:
    root = tmp_path / "scopes"
    root.mkdir()
    return root


@pytest.fixture
def make_scope(scopes_root: Path):
    """Factory for directory scopes, e.g. ``make_scope("remote")``."""

    def _make(name: str) -> DirectoryScopeStore:
        store = DirectoryScopeStore(name, scopes_root / name)
        store.root.mkdir(parents=True, exist_ok=True)
        return store

    return _make


@pytest.fixture
def workspace(tmp_path: Path, scopes_root: Path) -> Path:
    """An empty workspace whose manifest knows the ``remote`` scope."""
    ws = tmp_path / "workspace"
    ws.mkdir()
    write_manifest(ws, scopes_root, components={})
    return ws


class FakeInstaller:
    """Records install calls; raises *error* when one is set."""

    def __init__(self) -> None:
        self.calls: list[dict[str, str]] = []
        self.error: Exception | None = None

    async def install(self, requirements: dict[str, str]) -> None:
        self.calls.append(dict(requirements))
        if self.error is not None:
            raise self.error


@pytest.fixture
def installer() -> FakeInstaller:
    return FakeInstaller()


def write_manifest(ws: Path, scopes_root: Path, *, components: dict[str, str]) -> None:
    lines = ["[remotes]", f'remote = "{(scopes_root / "remote").as_posix()}"', ""]
    lines.append("[components]")
    lines.extend(f'"{cid}" = "{version}"' for cid, version in components.items())
    (ws / "compsync.toml").write_text("\n".join(lines) + "\n")


@pytest.fixture
def declare():
    """Rewrite the workspace manifest with the given component declarations."""

    def _declare(ws: Path, scopes_root: Path, components: dict[str, str]) -> None:
        write_manifest(ws, scopes_root, components=components)

    return _declare
