"""Data models for the import engine.

Every stage returns immutable records; the runner composes them. Nothing
here performs I/O.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

from compsync.exceptions import ConfigurationError

ImportStatus = Literal["imported", "up-to-date", "conflicted"]
ConflictReason = Literal["local-modification", "version-mismatch"]
FailureKind = Literal["not-found", "network"]
EntryOrigin = Literal["authored", "imported"]

LATEST_MARKERS = frozenset(("", "*", "latest"))

_VERSION_PART_RE = re.compile(r"\d+|[A-Za-z]+")
_MISSING_MARKER = b"\x00<missing>\x00"


# ── identifiers ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ComponentId:
    """``scope/name[@version]``. An empty scope means "never exported"."""

    scope: str
    name: str
    version: str | None = None

    @classmethod
    def parse(
        cls,
        raw: str,
        *,
        default_scope: str = "",
        known_scopes: Collection[str] | None = None,
    ) -> ComponentId:
        """Parse the canonical text form.

        The first ``/`` segment is the scope; the remainder, which may contain
        further slashes (``bar/foo``), is the name. A bare name uses
        *default_scope*.

        With *known_scopes*, a first segment that names no known scope is part
        of the name instead, so ``bar/foo2`` declared by a ``remote`` component
        parses as ``remote/bar/foo2``.
        """
        text = raw.strip()
        if not text:
            raise ConfigurationError("empty component identifier")
        version: str | None = None
        if "@" in text:
            text, _, version = text.rpartition("@")
            version = normalize_version(version)
        parts = [p for p in text.split("/") if p]
        if not parts:
            raise ConfigurationError(f"invalid component identifier: {raw!r}")
        if len(parts) == 1:
            return cls(scope=default_scope, name=parts[0], version=version)
        if (
            known_scopes is not None
            and default_scope
            and parts[0] != default_scope
            and parts[0] not in known_scopes
        ):
            return cls(scope=default_scope, name="/".join(parts), version=version)
        return cls(scope=parts[0], name="/".join(parts[1:]), version=version)

    @property
    def key(self) -> str:
        """scope/name, the identity of a component across versions."""
        return f"{self.scope}/{self.name}" if self.scope else self.name

    @property
    def is_exported(self) -> bool:
        return bool(self.scope)

    def without_version(self) -> ComponentId:
        return ComponentId(self.scope, self.name)

    def with_version(self, version: str | None) -> ComponentId:
        return ComponentId(self.scope, self.name, version)

    def __str__(self) -> str:
        return f"{self.key}@{self.version}" if self.version else self.key


def normalize_version(version: str | None) -> str | None:
    """Map the "latest" spellings to None."""
    if version is None:
        return None
    version = version.strip()
    return None if version in LATEST_MARKERS else version


def version_key(version: str) -> tuple:
    """Sort key for dotted versions: numeric parts compare numerically."""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in _VERSION_PART_RE.findall(version)
    )


def content_hash(files: Mapping[str, str | None]) -> str:
    """sha256 over files sorted by relative path.

    A ``None`` content marks a file that is expected but missing on disk, so
    a deleted file never hashes like an intact one.
    """
    digest = hashlib.sha256()
    for path in sorted(files):
        digest.update(path.encode("utf-8") + b"\x00")
        content = files[path]
        if content is None:
            digest.update(_MISSING_MARKER)
        else:
            digest.update(content.encode("utf-8") + b"\x00")
    return digest.hexdigest()


# ── fetched objects ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ComponentObject:
    """An immutable, content-addressed component version fetched from a scope."""

    id: ComponentId
    files: Mapping[str, str]
    dependencies: tuple[ComponentId, ...] = ()
    dev_dependencies: tuple[ComponentId, ...] = ()
    packages: Mapping[str, str] = field(default_factory=dict)
    dists: Mapping[str, str] = field(default_factory=dict)
    compiler: ComponentId | None = None
    tester: ComponentId | None = None
    extensions: tuple[ComponentId, ...] = ()
    content_hash: str = field(init=False)

    def __post_init__(self) -> None:
        if self.id.version is None:
            raise ConfigurationError(f"fetched object {self.id} has no version")
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))
        object.__setattr__(self, "packages", MappingProxyType(dict(self.packages)))
        object.__setattr__(self, "dists", MappingProxyType(dict(self.dists)))
        object.__setattr__(self, "content_hash", content_hash(self.files))

    @property
    def all_dependencies(self) -> tuple[ComponentId, ...]:
        return self.dependencies + self.dev_dependencies

    @property
    def environment_ids(self) -> tuple[ComponentId, ...]:
        return tuple(e for e in (self.compiler, self.tester) if e is not None)


@dataclass(frozen=True)
class FetchFailure:
    id: ComponentId
    kind: FailureKind
    message: str


@dataclass(frozen=True)
class FetchResult:
    """Objects fetched in one batch plus per-identifier failure annotations."""

    objects: tuple[ComponentObject, ...] = ()
    failures: tuple[FetchFailure, ...] = ()


@dataclass(frozen=True)
class VersionAmbiguity:
    """Several versions of one scope/name are required by the closure."""

    key: str
    versions: tuple[str, ...]


@dataclass(frozen=True)
class ResolvedClosure:
    """Full transitive set, split into primary and build-environment groups."""

    primary: tuple[ComponentObject, ...] = ()
    environments: tuple[ComponentObject, ...] = ()
    ambiguities: tuple[VersionAmbiguity, ...] = ()
    failures: tuple[FetchFailure, ...] = ()
    requested: tuple[ComponentId, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.primary and not self.environments

    def is_requested(self, obj: ComponentObject) -> bool:
        for req in self.requested:
            if req.key == obj.id.key and req.version in (None, obj.id.version):
                return True
        return False


# ── workspace state ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class WorkspaceEntry:
    """Where a component is materialized locally and at which synced state."""

    id: ComponentId
    path: str
    hash: str
    files: tuple[str, ...] = ()
    origin: EntryOrigin = "imported"

    @property
    def version(self) -> str | None:
        return self.id.version


@dataclass(frozen=True)
class ConflictRecord:
    id: ComponentId
    reason: ConflictReason


@dataclass(frozen=True)
class ImportDetails:
    """Outcome of one component in the import."""

    id: ComponentId
    version: str
    status: ImportStatus
    dependency: bool = False


@dataclass(frozen=True)
class DependencyAuditResult:
    """Three disjoint sets of ``(package, version)`` pairs."""

    missing_installed: tuple[tuple[str, str], ...] = ()
    missing_declared: tuple[tuple[str, str], ...] = ()
    missing_everywhere: tuple[tuple[str, str], ...] = ()

    @property
    def has_errors(self) -> bool:
        return bool(self.missing_everywhere)

    @property
    def is_clean(self) -> bool:
        return not (self.missing_installed or self.missing_declared or self.missing_everywhere)


@dataclass(frozen=True)
class ImportResult:
    """Everything the reporter needs after an import."""

    details: tuple[ImportDetails, ...] = ()
    closure: ResolvedClosure = field(default_factory=ResolvedClosure)
    audit: DependencyAuditResult = field(default_factory=DependencyAuditResult)
    conflicts: tuple[ConflictRecord, ...] = ()
    warnings: tuple[str, ...] = ()
    objects_only: bool = False
    installed_packages: tuple[str, ...] = ()

    @property
    def nothing_to_import(self) -> bool:
        return self.closure.is_empty

    @property
    def imported(self) -> tuple[ImportDetails, ...]:
        return tuple(d for d in self.details if not d.dependency)

    @property
    def dependencies(self) -> tuple[ImportDetails, ...]:
        return tuple(d for d in self.details if d.dependency)
