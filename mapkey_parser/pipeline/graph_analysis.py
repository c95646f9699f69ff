"""
Graph analyses over the mapkey definitions of one document.

All functions are read-only: they build new result lists and never touch
the definitions or the graph they are given.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from ..config import DEFAULT_NESTING_LIMIT
from ..models import MapkeyDefinition, NestingViolation
from .call_graph import CallGraph

logger = logging.getLogger(__name__)


def build_call_graph(
    definitions: Sequence[MapkeyDefinition],
    duplicate_policy: str = "first",
) -> CallGraph:
    """One entry per definition: its name and its ``called_names``."""
    return CallGraph(
        [(d.name, d.called_names) for d in definitions],
        duplicate_policy=duplicate_policy,
    )


def depth(graph: CallGraph, name: str) -> int:
    """Maximum call-path length below *name* (cycles cut, dangling = leaf)."""
    return graph.depth(name)


def find_cycles(graph: CallGraph) -> List[List[str]]:
    """
    Find circular nested calls.

    Every defined name not finished by an earlier walk starts a depth-first
    walk that carries its current path.  An edge back to a name on the path
    records ``path[first_occurrence:] + [name]`` – e.g. ``["A", "B", "A"]``.
    A name is expanded at most once per graph: once all of its callees have
    been walked it is finished and later edges into it are not followed, so
    the walk is linear in the number of edges.

    The walk uses an explicit stack of callee iterators, so deep call chains
    cannot exhaust the interpreter's recursion limit.
    """
    cycles: List[List[str]] = []
    seen: Set[Tuple[str, ...]] = set()
    done: Set[str] = set()

    for root in graph.names():
        if root in done:
            continue

        path: List[str] = [root]
        on_path: Dict[str, int] = {root: 0}
        stack: List[Iterator[str]] = [iter(graph.calls(root))]
        while stack:
            callee = next(stack[-1], None)
            if callee is None:
                stack.pop()
                finished = path.pop()
                del on_path[finished]
                done.add(finished)
                continue
            if callee in on_path:
                cycle = path[on_path[callee]:] + [callee]
                # a repeated call to the same name closes the same cycle again
                if tuple(cycle) not in seen:
                    seen.add(tuple(cycle))
                    cycles.append(cycle)
                continue
            if callee in done:
                continue
            on_path[callee] = len(path)
            path.append(callee)
            stack.append(iter(graph.calls(callee)))

    if cycles:
        logger.warning("%d circular mapkey call chain(s) found", len(cycles))
    return cycles


def nesting_violations(
    definitions: Sequence[MapkeyDefinition],
    limit: int = DEFAULT_NESTING_LIMIT,
    graph: Optional[CallGraph] = None,
) -> List[NestingViolation]:
    """
    Report definitions nested deeper than *limit* layers.

    The record itself is the first layer, so a record is reported when
    ``depth + 1 > limit``: with ``limit=5`` the head of a six-record chain
    (depth 5) is reported and the head of a five-record chain (depth 4) is
    not.
    """
    if graph is None:
        graph = build_call_graph(definitions)

    violations: List[NestingViolation] = []
    for definition in definitions:
        if graph.duplicate_policy == "all":
            value = graph.calls_depth(definition.name, definition.called_names)
        else:
            value = graph.depth(definition.name)
        if value + 1 > limit:
            violations.append(NestingViolation(name=definition.name, depth=value))

    for v in violations:
        logger.warning("Mapkey %s nests %d level(s) deep (limit %d)", v.name, v.depth + 1, limit)
    return violations


def depth_table(graph: CallGraph) -> Dict[str, int]:
    """Depth of every vertex of *graph*."""
    return {name: graph.depth(name) for name in graph.vertices()}
