"""Dependency graph construction and validation.

Edges point from a kit to the kits that must be applied before it. Three kinds
of edges exist:

- hard: declared prerequisites that match a kit id; always enforced
- implicit: every non-base kit comes after every base kit in the graph
- soft: tag or compatibility hints; kept only when they do not close a cycle

The graph is built from plain kit values and never mutated afterwards, so one
graph may be shared by concurrent readers.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from kit_composer.errors import CyclicDependencyError, InvalidBaseOrderingError
from kit_composer.models.catalog import Catalog
from kit_composer.models.kit import Kit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyGraph:
    """Kits plus their ordering edges."""

    nodes: dict[str, Kit]
    hard: dict[str, frozenset[str]]
    soft: dict[str, frozenset[str]]
    warnings: tuple[str, ...] = ()

    @property
    def base_ids(self) -> frozenset[str]:
        return frozenset(kit_id for kit_id, kit in self.nodes.items() if kit.is_base)

    def dependencies(self, kit_id: str) -> frozenset[str]:
        """Every kit that must precede kit_id: hard, soft and implicit base edges."""
        deps = set(self.hard.get(kit_id, frozenset())) | set(self.soft.get(kit_id, frozenset()))
        if not self.nodes[kit_id].is_base:
            deps |= self.base_ids
        return frozenset(dep for dep in deps if dep in self.nodes)


def check_base_ordering(kits: Iterable[Kit]) -> None:
    """Raise if any base kit hard-depends on a non-base kit.

    Raises:
        InvalidBaseOrderingError: Listing every offending (base, dependency) pair
    """
    by_id = {kit.id: kit for kit in kits}
    violations: list[tuple[str, str]] = []
    for kit_id in sorted(by_id):
        kit = by_id[kit_id]
        if not kit.is_base:
            continue
        for dep in sorted(kit.hard_dependencies):
            if dep in by_id and not by_id[dep].is_base:
                violations.append((kit_id, dep))

    if violations:
        raise InvalidBaseOrderingError(violations)


def find_cycle(edges: dict[str, frozenset[str]]) -> list[str] | None:
    """Depth-first search for a cycle.

    Returns:
        The cycle as an ordered list of ids, rotated to start at its smallest
        id, or None if the graph is acyclic
    """
    white, gray, black = 0, 1, 2
    color = {node: white for node in edges}
    path: list[str] = []

    def visit(node: str) -> list[str] | None:
        color[node] = gray
        path.append(node)
        for dep in sorted(edges.get(node, frozenset())):
            if dep not in color:
                continue
            if color[dep] == gray:
                return path[path.index(dep) :]
            if color[dep] == white:
                found = visit(dep)
                if found is not None:
                    return found
        path.pop()
        color[node] = black
        return None

    for node in sorted(edges):
        if color[node] == white:
            cycle = visit(node)
            if cycle is not None:
                start = cycle.index(min(cycle))
                return cycle[start:] + cycle[:start]
    return None


def _reaches(
    graph_deps: dict[str, set[str]],
    base_ids: set[str],
    nodes: dict[str, Kit],
    start: str,
    target: str,
) -> bool:
    """True if target is reachable from start following dependency edges."""
    stack = [start]
    seen: set[str] = set()
    while stack:
        current = stack.pop()
        if current == target:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(graph_deps.get(current, set()))
        if not nodes[current].is_base:
            stack.extend(base_ids)
    return False


def build_graph(kits: Iterable[Kit]) -> DependencyGraph:
    """Build the dependency graph over a set of kits.

    Hard dependencies naming kits outside the set are ignored here; the
    resolver is responsible for closing the set first.

    Raises:
        InvalidBaseOrderingError: If a base kit hard-depends on a non-base kit
        CyclicDependencyError: If hard dependencies form a cycle
    """
    nodes = {kit.id: kit for kit in kits}
    check_base_ordering(nodes.values())

    hard = {
        kit_id: frozenset(dep for dep in kit.hard_dependencies if dep in nodes)
        for kit_id, kit in nodes.items()
    }
    cycle = find_cycle(hard)
    if cycle is not None:
        raise CyclicDependencyError(cycle)

    base_ids = {kit_id for kit_id, kit in nodes.items() if kit.is_base}
    accepted: dict[str, set[str]] = {kit_id: set(deps) for kit_id, deps in hard.items()}
    soft: dict[str, set[str]] = {kit_id: set() for kit_id in nodes}
    warnings: list[str] = []

    for kit_id in sorted(nodes):
        for hint in sorted(nodes[kit_id].soft_dependencies):
            if hint.kind == "tag":
                targets = sorted(
                    other
                    for other, kit in nodes.items()
                    if hint.value in kit.tags and other != kit_id
                )
            else:
                targets = [hint.value] if hint.value in nodes else []

            if not targets:
                warnings.append(
                    f"{kit_id}: advisory {hint.kind} '{hint.value}' has no matching kit in this set"
                )
                continue

            for target in targets:
                if target in accepted[kit_id]:
                    continue
                if _reaches(accepted, base_ids, nodes, target, kit_id):
                    logger.debug("Dropping soft edge %s -> %s", kit_id, target)
                    warnings.append(
                        f"{kit_id}: ignored advisory ordering after '{target}' (conflicts with "
                        "required ordering)"
                    )
                    continue
                accepted[kit_id].add(target)
                soft[kit_id].add(target)

    return DependencyGraph(
        nodes=nodes,
        hard=hard,
        soft={kit_id: frozenset(targets) for kit_id, targets in soft.items()},
        warnings=tuple(warnings),
    )


def validate_catalog(catalog: Catalog) -> DependencyGraph:
    """Validate base ordering and acyclicity over every visible kit."""
    return build_graph(list(catalog))
