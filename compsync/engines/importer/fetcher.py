"""Remote object fetcher: concurrent, bounded, de-duplicated retrieval."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import structlog

from compsync.engines.importer.models import (
    ComponentId,
    ComponentObject,
    FetchFailure,
    FetchResult,
)
from compsync.exceptions import NetworkError, NothingToImportError
from compsync.remote.registry import RemoteRegistry
from compsync.workspace.objects import ObjectStore

log = structlog.get_logger("compsync.engine")

_DEFAULT_CONCURRENCY = 8


class ObjectFetcher:
    """Fetches component objects from their scopes.

    Requests run as ``asyncio`` tasks. Each scope gets its own semaphore so one
    slow remote cannot be flooded, and every identifier maps to at most one
    task for the fetcher's lifetime: concurrent or repeated requests for the
    same id await the same task.

    Pinned identifiers already in the local object *cache* are served from it
    without contacting the scope.
    """

    def __init__(
        self,
        registry: RemoteRegistry,
        concurrency: int = _DEFAULT_CONCURRENCY,
        cache: ObjectStore | None = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._concurrency = concurrency
        self._semaphores: dict[str, asyncio.Semaphore] = {}
        self._inflight: dict[ComponentId, asyncio.Task[ComponentObject | None]] = {}

    @property
    def request_count(self) -> int:
        """Distinct identifiers requested so far."""
        return len(self._inflight)

    async def fetch(self, ids: Iterable[ComponentId], *, require_any: bool = True) -> FetchResult:
        """Fetch *ids* and return the objects plus per-identifier failures.

        With *require_any*, an outcome where nothing could be fetched raises:
        ``NothingToImportError`` when every failure is a not-found (the
        component was never published) and ``NetworkError`` otherwise.
        """
        unique = list(dict.fromkeys(ids))
        if not unique:
            if require_any:
                raise NothingToImportError()
            return FetchResult()

        tasks = [self._task_for(cid) for cid in unique]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        objects: dict[ComponentId, ComponentObject] = {}
        failures: list[FetchFailure] = []
        for cid, outcome in zip(unique, outcomes, strict=True):
            if isinstance(outcome, NetworkError):
                failures.append(FetchFailure(cid, "network", str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            elif outcome is None:
                failures.append(
                    FetchFailure(cid, "not-found", f"{cid} was not found in scope {cid.scope!r}")
                )
            else:
                # An unversioned request and a pinned one can resolve to the
                # same object; keep a single entry.
                objects.setdefault(outcome.id, outcome)

        for failure in failures:
            log.warning(
                "fetcher.failed",
                component=str(failure.id),
                kind=failure.kind,
                error=failure.message,
            )

        if require_any and not objects:
            if any(f.kind == "network" for f in failures):
                summary = "; ".join(f.message for f in failures)
                raise NetworkError(f"unable to fetch any component: {summary}", tuple(failures))
            raise NothingToImportError(tuple(failures))

        log.debug("fetcher.fetched", fetched=len(objects), failed=len(failures))
        return FetchResult(objects=tuple(objects.values()), failures=tuple(failures))

    def _task_for(self, cid: ComponentId) -> asyncio.Task[ComponentObject | None]:
        task = self._inflight.get(cid)
        if task is None:
            task = asyncio.ensure_future(self._fetch_one(cid))
            self._inflight[cid] = task
        return task

    async def _fetch_one(self, cid: ComponentId) -> ComponentObject | None:
        if self._cache is not None and cid.version is not None:
            cached = self._cache.get(cid)
            if cached is not None:
                log.debug("fetcher.cache_hit", component=str(cid))
                return cached
        if not self._registry.knows(cid.scope):
            log.info("fetcher.unknown_scope", component=str(cid), scope=cid.scope)
            return None
        sem = self._semaphores.setdefault(cid.scope, asyncio.Semaphore(self._concurrency))
        async with sem:
            store = self._registry.session(cid.scope)
            log.debug("fetcher.request", component=str(cid), scope=cid.scope)
            return await store.get(cid)
