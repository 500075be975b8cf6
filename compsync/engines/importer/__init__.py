"""Import engine: resolve, fetch, close over dependencies, gate, write, audit."""

from compsync.engines.importer.models import (
    ComponentId,
    ComponentObject,
    ConflictRecord,
    DependencyAuditResult,
    ImportDetails,
    ImportResult,
    ResolvedClosure,
    WorkspaceEntry,
)
from compsync.engines.importer.options import EnvironmentOptions, ImportOptions

__all__ = [
    "ComponentId",
    "ComponentObject",
    "ConflictRecord",
    "DependencyAuditResult",
    "EnvironmentOptions",
    "ImportDetails",
    "ImportOptions",
    "ImportResult",
    "ResolvedClosure",
    "WorkspaceEntry",
]
