"""Workspace-level import lock."""

from __future__ import annotations

import os
from pathlib import Path
from types import TracebackType

import structlog

from compsync.exceptions import WorkspaceLockedError
from compsync.workspace.fs import STATE_DIR

log = structlog.get_logger("compsync.workspace")

LOCK_FILE = "import.lock"


class WorkspaceLock:
    """Exclusive lock file held for the whole import.

    Created with ``O_CREAT | O_EXCL`` so two processes (or two imports in one
    event loop) cannot both hold it. Usable as a sync or async context manager.
    """

    def __init__(self, workspace: Path) -> None:
        self.path = workspace / STATE_DIR / LOCK_FILE
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise WorkspaceLockedError(str(self.path)) from exc
        with os.fdopen(fd, "w") as f:
            f.write(f"{os.getpid()}\n")
        self._held = True
        log.debug("lock.acquired", path=str(self.path))

    def release(self) -> None:
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False
        log.debug("lock.released", path=str(self.path))

    def __enter__(self) -> WorkspaceLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    async def __aenter__(self) -> WorkspaceLock:
        return self.__enter__()

    async def __aexit__(self, *exc: object) -> None:
        self.release()
