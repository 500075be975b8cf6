"""Dependency closure builder: fixed-point walk over declared dependencies."""

from __future__ import annotations

from collections import defaultdict

import structlog

from compsync.core.config import AmbiguityPolicy
from compsync.engines.importer.fetcher import ObjectFetcher
from compsync.engines.importer.models import (
    ComponentId,
    ComponentObject,
    FetchFailure,
    FetchResult,
    ResolvedClosure,
    VersionAmbiguity,
    version_key,
)
from compsync.engines.importer.options import EnvironmentOptions
from compsync.exceptions import NetworkError, NotFoundError, VersionAmbiguityError

log = structlog.get_logger("compsync.engine")


async def build_closure(
    fetcher: ObjectFetcher,
    seeds: FetchResult,
    requested: tuple[ComponentId, ...],
    *,
    environment: EnvironmentOptions | None = None,
    with_environments: bool = False,
    ambiguity_policy: AmbiguityPolicy = "error",
) -> ResolvedClosure:
    """Resolve the transitive closure of *seeds*.

    Runtime and dev dependencies are followed until no new identifier shows
    up. Termination relies on the visited set, so cycles are fine. Failures
    among the seeds were already tolerated by the caller and are carried
    along; a dependency that cannot be fetched makes the closure incomplete
    and raises.

    When the request selected an environment category, the seeds and their
    dependencies form the environment group and the primary group is empty.
    With *with_environments*, the compilers and testers of the primary
    components are resolved into the environment group.
    """
    failures: list[FetchFailure] = list(seeds.failures)
    category = environment.category if environment else None

    if category:
        environments = await _walk(fetcher, list(seeds.objects))
        log.info(
            "closure.environment_import",
            category=category,
            components=[str(o.id) for o in environments],
        )
        return ResolvedClosure(
            environments=tuple(environments),
            failures=tuple(failures),
            requested=requested,
        )

    primary = await _walk(fetcher, list(seeds.objects))

    ambiguities = find_ambiguities(primary)
    if ambiguities:
        if ambiguity_policy == "error":
            raise VersionAmbiguityError(ambiguities)
        for amb in ambiguities:
            log.warning("closure.version_ambiguity", component=amb.key, versions=list(amb.versions))

    environments: list[ComponentObject] = []
    if with_environments:
        env_ids = [eid for obj in primary for eid in obj.environment_ids]
        env_seeds = await fetcher.fetch(env_ids, require_any=False)
        failures.extend(env_seeds.failures)
        environments = await _walk(fetcher, list(env_seeds.objects))

    log.info(
        "closure.resolved",
        primary=len(primary),
        environments=len(environments),
        ambiguities=len(ambiguities),
    )
    return ResolvedClosure(
        primary=tuple(primary),
        environments=tuple(environments),
        ambiguities=ambiguities,
        failures=tuple(failures),
        requested=requested,
    )


async def _walk(fetcher: ObjectFetcher, roots: list[ComponentObject]) -> list[ComponentObject]:
    closure: dict[ComponentId, ComponentObject] = {}
    visited: set[ComponentId] = set()
    required_by: dict[ComponentId, ComponentId] = {}

    pending: list[ComponentId] = []
    for obj in roots:
        if obj.id in closure:
            continue
        closure[obj.id] = obj
        visited.add(obj.id)
        pending.extend(_dependencies_of(obj, required_by))

    while pending:
        frontier = [cid for cid in dict.fromkeys(pending) if cid not in visited]
        pending = []
        if not frontier:
            break
        visited.update(frontier)

        result = await fetcher.fetch(frontier, require_any=False)
        if result.failures:
            _raise_missing(result.failures, required_by)

        for obj in result.objects:
            visited.add(obj.id)
            if obj.id in closure:
                continue
            closure[obj.id] = obj
            pending.extend(_dependencies_of(obj, required_by))

    return list(closure.values())


def _dependencies_of(
    obj: ComponentObject, required_by: dict[ComponentId, ComponentId]
) -> list[ComponentId]:
    deps = list(obj.all_dependencies)
    for dep in deps:
        required_by.setdefault(dep, obj.id)
    return deps


def _raise_missing(
    failures: tuple[FetchFailure, ...], required_by: dict[ComponentId, ComponentId]
) -> None:
    lines = [f"{f.id} (required by {required_by.get(f.id, '?')}): {f.message}" for f in failures]
    message = "unable to resolve dependencies:\n  " + "\n  ".join(lines)
    if any(f.kind == "network" for f in failures):
        raise NetworkError(message, failures)
    raise NotFoundError(message)


def find_ambiguities(objects: list[ComponentObject]) -> tuple[VersionAmbiguity, ...]:
    """Components whose scope/name appears at more than one version."""
    versions: dict[str, set[str]] = defaultdict(set)
    for obj in objects:
        versions[obj.id.key].add(obj.id.version or "")
    return tuple(
        VersionAmbiguity(key, tuple(sorted(found, key=version_key)))
        for key, found in versions.items()
        if len(found) > 1
    )
