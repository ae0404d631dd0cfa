"""Resolve a kit request into a deterministic ApplyPlan."""

import heapq
import logging
from collections.abc import Sequence

from kit_composer.errors import UnknownKitError, UnsatisfiedDependencyError
from kit_composer.models.catalog import Catalog, KitRequest
from kit_composer.models.kit import Kit
from kit_composer.models.plan import ApplyPlan
from kit_composer.operations.graph import DependencyGraph, build_graph

logger = logging.getLogger(__name__)


def order_key(kit: Kit) -> tuple[bool, str, int]:
    """Tie-break among ready kits: base first, then ascending id, then newest version."""
    return (not kit.is_base, kit.id, -kit.version)


def _select_requested(requests: Sequence[KitRequest], catalog: Catalog) -> dict[str, Kit]:
    selected: dict[str, Kit] = {}
    unknown: list[str] = []
    for request in requests:
        kit = catalog.get(request.kit_id, request.version)
        if kit is None:
            unknown.append(str(request))
            continue
        existing = selected.get(kit.id)
        if existing is not None and existing.version != kit.version:
            unknown.append(f"{request} (conflicts with {existing.ref})")
            continue
        selected[kit.id] = kit

    if unknown:
        raise UnknownKitError(sorted(set(unknown)))
    return selected


def close_dependencies(
    selected: dict[str, Kit], catalog: Catalog
) -> tuple[dict[str, Kit], list[str]]:
    """Compute the transitive closure of hard dependencies.

    Returns:
        (closed kit set, sorted ids that were not in the original selection)
    """
    closed = dict(selected)
    missing: set[str] = set()
    frontier = sorted(selected)

    while frontier:
        kit_id = frontier.pop()
        for dep in sorted(closed[kit_id].hard_dependencies):
            if dep in closed:
                continue
            dep_kit = catalog.get(dep)
            if dep_kit is None:
                continue
            closed[dep] = dep_kit
            missing.add(dep)
            frontier.append(dep)

    return closed, sorted(missing)


def topological_order(graph: DependencyGraph) -> list[Kit]:
    """Kahn's algorithm with a deterministic priority among ready kits."""
    remaining = {kit_id: set(graph.dependencies(kit_id)) for kit_id in graph.nodes}
    dependents: dict[str, set[str]] = {kit_id: set() for kit_id in graph.nodes}
    for kit_id, deps in remaining.items():
        for dep in deps:
            dependents[dep].add(kit_id)

    ready = [order_key(graph.nodes[kit_id]) for kit_id, deps in remaining.items() if not deps]
    heapq.heapify(ready)
    ordered: list[Kit] = []

    while ready:
        _, kit_id, _ = heapq.heappop(ready)
        ordered.append(graph.nodes[kit_id])
        for dependent in sorted(dependents[kit_id]):
            remaining[dependent].discard(kit_id)
            if not remaining[dependent]:
                heapq.heappush(ready, order_key(graph.nodes[dependent]))

    if len(ordered) != len(graph.nodes):
        # build_graph rejects hard cycles and drops cyclic soft edges
        stuck = sorted(set(graph.nodes) - {kit.id for kit in ordered})
        raise ValueError(f"Dependency graph could not be ordered: {', '.join(stuck)}")

    return ordered


def resolve_plan(
    requests: Sequence[KitRequest],
    catalog: Catalog,
    *,
    strict: bool,
) -> ApplyPlan:
    """Resolve requested kits into an ordered ApplyPlan.

    Args:
        requests: Requested kit ids, optionally pinned
        catalog: Catalog snapshot to resolve against
        strict: If True, missing hard dependencies fail instead of being added

    Returns:
        ApplyPlan, identical for identical (requests, catalog)

    Raises:
        UnknownKitError: If a requested id or pinned version does not exist
        UnsatisfiedDependencyError: In strict mode, listing every missing dependency
        InvalidBaseOrderingError: If a base kit depends on a non-base kit
        CyclicDependencyError: If the selected kits' hard dependencies form a cycle
    """
    selected = _select_requested(requests, catalog)
    closed, missing = close_dependencies(selected, catalog)

    if missing and strict:
        raise UnsatisfiedDependencyError(missing)

    warnings = [f"Auto-including hard dependency '{dep}'" for dep in missing]
    for dep in missing:
        logger.debug("Auto-including hard dependency '%s'", dep)

    graph = build_graph(closed.values())
    warnings.extend(graph.warnings)
    ordered = topological_order(graph)
    logger.debug("Resolved plan: %s", [kit.ref for kit in ordered])

    return ApplyPlan(
        kits=tuple(ordered),
        requested=tuple(str(request) for request in requests),
        auto_included=tuple(missing),
        warnings=tuple(warnings),
    )
