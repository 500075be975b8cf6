"""Scope registry: maps scope names to store clients."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import urlparse

import structlog

from compsync.core.config import Settings
from compsync.engines.importer.models import ComponentId, ComponentObject
from compsync.exceptions import ConfigurationError
from compsync.remote.client import HttpScopeClient
from compsync.remote.directory import DirectoryScopeStore

log = structlog.get_logger("compsync.remote")


@runtime_checkable
class RemoteStore(Protocol):
    """Interface that every scope client must satisfy.

    ``get`` returns None when the component was never published and raises
    ``NetworkError`` when the scope cannot be reached.

    ``known_scopes`` lists every configured scope so namespaced dependency
    names (``bar/foo``) are not mistaken for scope-qualified ones.
    """

    scope: str
    known_scopes: frozenset[str]

    async def get(self, cid: ComponentId) -> ComponentObject | None: ...

    async def close(self) -> None: ...


class RemoteRegistry:
    """Opens one client ("session") per scope on first use; closes them all on exit."""

    def __init__(
        self,
        remotes: dict[str, str],
        settings: Settings | None = None,
        *,
        base_dir: Path | None = None,
    ) -> None:
        self._remotes = dict(remotes)
        self._settings = settings or Settings()
        self._base_dir = base_dir or Path.cwd()
        self._open: dict[str, RemoteStore] = {}

    @classmethod
    def from_stores(cls, stores: list[RemoteStore]) -> RemoteRegistry:
        """Build a registry around already constructed stores."""
        registry = cls({})
        for store in stores:
            registry._open[store.scope] = store
            registry._remotes[store.scope] = f"<{type(store).__name__}>"
        for store in stores:
            store.known_scopes = frozenset(registry._remotes)
        return registry

    def knows(self, scope: str) -> bool:
        return scope in self._remotes

    def session(self, scope: str) -> RemoteStore:
        """Return the open client for *scope*, creating it on first use."""
        store = self._open.get(scope)
        if store is not None:
            return store
        url = self._remotes.get(scope)
        if url is None:
            raise KeyError(scope)
        store = self._build(scope, url)
        self._open[scope] = store
        log.debug("registry.session_opened", scope=scope, url=url)
        return store

    def _build(self, scope: str, url: str) -> RemoteStore:
        parsed = urlparse(url)
        known = frozenset(self._remotes)
        if parsed.scheme in ("http", "https"):
            return HttpScopeClient(
                scope,
                url,
                token=self._settings.token,
                timeout=self._settings.http_timeout,
                max_retries=self._settings.max_retries,
                known_scopes=known,
            )
        if parsed.scheme == "file":
            return DirectoryScopeStore(scope, Path(parsed.path), known_scopes=known)
        if parsed.scheme == "":
            path = Path(url).expanduser()
            root = path if path.is_absolute() else self._base_dir / path
            return DirectoryScopeStore(scope, root, known_scopes=known)
        raise ConfigurationError(f"unsupported scope URL for {scope!r}: {url}")

    async def close(self) -> None:
        for scope, store in list(self._open.items()):
            await store.close()
            log.debug("registry.session_closed", scope=scope)
        self._open.clear()

    async def __aenter__(self) -> RemoteRegistry:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
