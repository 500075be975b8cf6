"""Declared and installed external package state of the project.

Declared packages come from ``requirements*.txt`` and the
``[project].dependencies`` array of ``pyproject.toml``; installed packages
from the distributions visible to :mod:`importlib.metadata`.
"""

from __future__ import annotations

import re
import sys
from importlib import metadata
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import structlog

log = structlog.get_logger("compsync.workspace")

# Matches: package_name followed by optional version specifier(s)
_REQ_RE = re.compile(
    r"^([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)"  # package name
    r"(\[[^\]]*\])?"  # optional extras
    r"\s*"
    r"(.*)?$",  # everything after name = constraint
)

_NORMALIZE_RE = re.compile(r"[-_.]+")

REQUIREMENTS_PATTERNS = ["requirements.txt", "requirements/*.txt", "requirements-*.txt"]


def normalize_name(name: str) -> str:
    """PEP 503 normalized package name."""
    return _NORMALIZE_RE.sub("-", name).lower()


def parse_requirement(line: str) -> tuple[str, str] | None:
    """``name[extras] >=1.0 ; marker`` → ``(name, ">=1.0")``; None for non-requirements."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith(("-r", "-c", "-e", "--")):
        return None
    marker_pos = line.find(";")
    if marker_pos != -1:
        line = line[:marker_pos].strip()
    comment_pos = line.find(" #")
    if comment_pos != -1:
        line = line[:comment_pos].strip()
    m = _REQ_RE.match(line)
    if not m:
        return None
    return m.group(1), (m.group(4) or "").strip()


def declared_packages(project_root: Path) -> dict[str, str]:
    """Normalized name → constraint, merged over every manifest found."""
    declared: dict[str, str] = {}

    for pattern in REQUIREMENTS_PATTERNS:
        for hit in sorted(project_root.glob(pattern)):
            if not hit.is_file():
                continue
            for raw_line in hit.read_text(encoding="utf-8", errors="replace").splitlines():
                parsed = parse_requirement(raw_line)
                if parsed:
                    declared.setdefault(normalize_name(parsed[0]), parsed[1])

    pyproject = project_root / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError:
            log.warning("packages.invalid_pyproject", path=str(pyproject))
            data = {}
        for raw in data.get("project", {}).get("dependencies", []):
            parsed = parse_requirement(raw)
            if parsed:
                declared.setdefault(normalize_name(parsed[0]), parsed[1])

    return declared


def installed_packages() -> dict[str, str]:
    """Normalized name → installed version for the running interpreter."""
    installed: dict[str, str] = {}
    for dist in metadata.distributions():
        name = dist.metadata.get("Name")
        if name:
            installed[normalize_name(name)] = dist.version
    return installed
