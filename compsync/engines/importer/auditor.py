"""Dependency-state auditor: advisory check of external package dependencies."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog

from compsync.engines.importer.models import ComponentObject, DependencyAuditResult
from compsync.workspace.packages import normalize_name

log = structlog.get_logger("compsync.engine")


def required_packages(objects: Iterable[ComponentObject]) -> dict[str, str]:
    """Aggregate package requirements of the closure, first declaration wins."""
    required: dict[str, str] = {}
    for obj in objects:
        for name, spec in obj.packages.items():
            required.setdefault(name, spec)
    return required


def audit_dependencies(
    required: Mapping[str, str],
    declared: Mapping[str, str],
    installed: Mapping[str, str],
) -> DependencyAuditResult:
    """Classify every required package against the project's state.

    *declared* and *installed* are keyed by normalized name. A package that
    is both declared and installed is fine and appears nowhere.
    """
    missing_installed: list[tuple[str, str]] = []
    missing_declared: list[tuple[str, str]] = []
    missing_everywhere: list[tuple[str, str]] = []

    for name, spec in sorted(required.items()):
        key = normalize_name(name)
        in_declared = key in declared
        in_installed = key in installed
        if in_declared and in_installed:
            continue
        if in_declared:
            missing_installed.append((name, spec))
        elif in_installed:
            missing_declared.append((name, spec))
        else:
            missing_everywhere.append((name, spec))

    result = DependencyAuditResult(
        missing_installed=tuple(missing_installed),
        missing_declared=tuple(missing_declared),
        missing_everywhere=tuple(missing_everywhere),
    )
    if not result.is_clean:
        log.info(
            "auditor.mismatches",
            not_installed=len(missing_installed),
            not_declared=len(missing_declared),
            missing=len(missing_everywhere),
        )
    return result
