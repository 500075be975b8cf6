"""Custom exceptions for the compsync import engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from compsync.engines.importer.models import ConflictRecord, FetchFailure, VersionAmbiguity


class CompsyncError(Exception):
    """Base exception for all engine errors."""


class ConfigurationError(CompsyncError):
    """Contradictory or invalid import options. Raised before any network call."""


class WorkspaceError(CompsyncError):
    """Manifest or workspace map is missing required fields or is malformed."""


class WorkspaceLockedError(CompsyncError):
    """Another import is already running against the same workspace."""

    def __init__(self, lock_path: str) -> None:
        self.lock_path = lock_path
        super().__init__(
            f"workspace is locked by another import ({lock_path}). "
            "Wait for it to finish or remove the lock file if it is stale."
        )


class NotFoundError(CompsyncError):
    """A requested component was never published to its scope."""


class NothingToImportError(NotFoundError):
    """Every requested identifier was unavailable (or none was requested)."""

    def __init__(self, failures: tuple[FetchFailure, ...] = ()) -> None:
        self.failures = failures
        super().__init__("nothing to import")


class NetworkError(CompsyncError):
    """A remote scope could not be reached."""

    def __init__(self, message: str, failures: tuple[FetchFailure, ...] = ()) -> None:
        self.failures = failures
        super().__init__(message)


class ConflictError(CompsyncError):
    """Components were modified locally since their last synchronization.

    Always carries the full list of conflicts so they can be resolved together.
    """

    def __init__(self, conflicts: list[ConflictRecord]) -> None:
        self.conflicts = conflicts
        lines = [f"  {c.id} ({c.reason})" for c in conflicts]
        super().__init__(
            f"unable to import {len(conflicts)} component(s), they were modified locally:\n"
            + "\n".join(lines)
            + "\nuse --override to discard the local changes"
        )


class VersionAmbiguityError(CompsyncError):
    """The closure requires more than one version of the same component."""

    def __init__(self, ambiguities: tuple[VersionAmbiguity, ...]) -> None:
        self.ambiguities = ambiguities
        desc = "; ".join(f"{a.key} ({', '.join(a.versions)})" for a in ambiguities)
        super().__init__(f"dependency graph requires multiple versions of: {desc}")


class InvariantError(CompsyncError):
    """Internal consistency violation. Indicates a bug, never swallowed."""


class PackageInstallError(CompsyncError):
    """The package manager could not be run or exited with an error."""
