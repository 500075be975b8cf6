"""External package installation for newly imported components."""

from __future__ import annotations

import asyncio
import sys
from typing import Protocol, runtime_checkable

import structlog

from compsync.exceptions import PackageInstallError

log = structlog.get_logger("compsync.workspace")


@runtime_checkable
class PackageInstaller(Protocol):
    """Installs ``{name: constraint}`` requirements into the project environment."""

    async def install(self, requirements: dict[str, str]) -> None: ...


class PipInstaller:
    """Runs ``python -m pip install`` in a subprocess."""

    def __init__(self, python: str | None = None, extra_args: list[str] | None = None) -> None:
        self._python = python or sys.executable
        self._extra_args = list(extra_args or [])

    async def install(self, requirements: dict[str, str]) -> None:
        if not requirements:
            return
        specs = [f"{name}{as_specifier(c)}" for name, c in sorted(requirements.items())]
        cmd = [self._python, "-m", "pip", "install", *self._extra_args, *specs]
        log.info("installer.pip_install", packages=specs)
        await _run(cmd)


async def _run(cmd: list[str]) -> None:
    """Run a command, raising PackageInstallError on failure."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise PackageInstallError(f"could not run {cmd[0]}: {exc}") from exc
    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise PackageInstallError(
            f"package installation failed (exit {proc.returncode}): {stderr.decode().strip()}"
        )


def as_specifier(constraint: str) -> str:
    """A bare version pins exactly; anything else is passed through."""
    constraint = constraint.strip()
    if constraint in ("", "*", "latest"):
        return ""
    if constraint[0].isdigit():
        return f"=={constraint}"
    return constraint
