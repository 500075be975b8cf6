"""Filesystem helpers: atomic file writes, directory swaps, on-disk hashing."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from compsync.engines.importer.models import content_hash

STATE_DIR = ".compsync"


def atomic_write_text(path: Path, content: str) -> None:
    """Write *content* to a sibling temp file, then ``os.replace`` it in."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def atomic_write_json(path: Path, data: Any) -> None:
    atomic_write_text(path, json.dumps(data, indent=2, sort_keys=False) + "\n")


def staging_dir(workspace: Path) -> Path:
    """Create a fresh staging directory on the same filesystem as the workspace."""
    root = workspace / STATE_DIR / "tmp"
    root.mkdir(parents=True, exist_ok=True)
    target = root / f"stage-{uuid.uuid4().hex[:12]}"
    target.mkdir()
    return target


def write_tree(root: Path, files: dict[str, str]) -> None:
    """Write relative path → content pairs under *root*."""
    for rel, content in files.items():
        dest = safe_join(root, rel)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with open(dest, "w", encoding="utf-8", newline="") as f:
            f.write(content)


def swap_into_place(staged: Path, target: Path) -> None:
    """Move *staged* to *target*, replacing any existing directory.

    The old directory is renamed aside first and only removed once the new
    one is in place; if the final rename fails the old one is restored.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    backup: Path | None = None
    if target.exists():
        backup = target.with_name(f".{target.name}.old-{uuid.uuid4().hex[:8]}")
        os.replace(target, backup)
    try:
        os.replace(staged, target)
    except BaseException:
        if backup is not None:
            os.replace(backup, target)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)


def replace_files(staged: Path, target: Path, stale: Iterable[str] = ()) -> None:
    """Move each file under *staged* into the existing *target* directory.

    Files listed in *stale* are deleted afterwards. Anything else already in
    *target* is left where it is.
    """
    for src in sorted(p for p in staged.rglob("*") if p.is_file()):
        dest = target / src.relative_to(staged)
        dest.parent.mkdir(parents=True, exist_ok=True)
        os.replace(src, dest)
    for rel in stale:
        path = safe_join(target, rel)
        path.unlink(missing_ok=True)
        parent = path.parent
        while parent != target and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent


def safe_join(root: Path, rel: str) -> Path:
    """Join *rel* under *root*, refusing absolute paths and ``..`` escapes."""
    candidate = Path(rel)
    if candidate.is_absolute() or ".." in candidate.parts:
        raise ValueError(f"refusing to write outside the component directory: {rel!r}")
    return root / candidate


def hash_on_disk(root: Path, files: Iterable[str]) -> str:
    """Hash the listed files as they currently are under *root*.

    Files are read without newline translation so the result matches the
    hash of the object they were written from.
    """
    contents: dict[str, str | None] = {}
    for rel in files:
        path = root / rel
        try:
            with open(path, encoding="utf-8", newline="") as f:
                contents[rel] = f.read()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError, UnicodeDecodeError):
            contents[rel] = None
    return content_hash(contents)
