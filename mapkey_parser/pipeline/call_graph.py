"""
CallGraph
=========

Directed graph of nested-call relationships between mapkey records.

The graph keeps two views:

* ``entries`` – one ``(name, called_names)`` pair per definition, in
  document order, exactly as parsed (order preserved, nothing deduplicated).
* a name-level :class:`networkx.DiGraph` used for queries.  Each called name
  that has no definition becomes a *dangling* vertex (``defined=False``)
  with no outgoing edges.

Which definition owns a name shared by several records is decided by the
duplicate policy (see :mod:`mapkey_parser.config`).

Depths are computed once per graph on the condensation of the name graph
(every strongly connected component collapsed to one vertex) and cached, so
repeated queries against the same document revision are O(1).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

import networkx as nx

from ..config import DUPLICATE_POLICIES


@dataclass(frozen=True)
class CallGraphEntry:
    name: str
    calls: Tuple[str, ...]

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "calls": list(self.calls)}


class CallGraph:
    """
    Name-keyed call graph over the definitions of one document.

    Parameters
    ----------
    entries:
        ``(name, called_names)`` for every definition, in document order.
    duplicate_policy:
        ``"first"`` – a name resolves to its first definition;
        ``"all"`` – a name's calls are those of every definition sharing it.
    """

    def __init__(
        self,
        entries: Sequence[Tuple[str, Sequence[str]]],
        duplicate_policy: str = "first",
    ) -> None:
        if duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(f"Unknown duplicate policy: {duplicate_policy!r}")
        self.duplicate_policy = duplicate_policy
        self.entries: List[CallGraphEntry] = [
            CallGraphEntry(name, tuple(calls)) for name, calls in entries
        ]

        # Resolved outgoing calls per defined name (order preserved)
        self._calls: Dict[str, List[str]] = {}
        for entry in self.entries:
            if entry.name not in self._calls:
                self._calls[entry.name] = list(entry.calls)
            elif duplicate_policy == "all":
                self._calls[entry.name].extend(entry.calls)

        self._graph = nx.DiGraph()
        for name in self._calls:
            self._graph.add_node(name, defined=True)
        for entry in self.entries:
            for callee in entry.calls:
                if callee not in self._graph:
                    self._graph.add_node(callee, defined=False)
        for name, calls in self._calls.items():
            for callee in calls:
                self._graph.add_edge(name, callee)

        self._depths: Optional[Dict[str, int]] = None
        self._component: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Mapping-style access
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._calls

    def __getitem__(self, name: str) -> List[str]:
        return list(self._calls[name])

    def __iter__(self) -> Iterator[str]:
        return iter(self._calls)

    def __len__(self) -> int:
        return len(self._calls)

    def names(self) -> List[str]:
        """Defined names, first-appearance order, each once."""
        return list(self._calls)

    def calls(self, name: str) -> List[str]:
        """Resolved outgoing calls of *name*; empty for dangling or unknown names."""
        return list(self._calls.get(name, ()))

    def as_mapping(self) -> Dict[str, List[str]]:
        return {name: list(calls) for name, calls in self._calls.items()}

    # ------------------------------------------------------------------
    # Graph queries
    # ------------------------------------------------------------------

    def is_defined(self, name: str) -> bool:
        return name in self._calls

    def callers(self, name: str) -> List[str]:
        """Defined names with an edge to *name*."""
        if name not in self._graph:
            return []
        return list(self._graph.predecessors(name))

    def transitive_calls(self, name: str) -> Set[str]:
        """Every name reachable from *name* (excluding *name* unless on a cycle)."""
        if name not in self._graph:
            return set()
        reachable = set(nx.descendants(self._graph, name))
        if self._graph.has_edge(name, name) or any(
            self._graph.has_edge(other, name) for other in reachable
        ):
            reachable.add(name)
        return reachable

    def dangling_names(self) -> List[str]:
        return [n for n, defined in self._graph.nodes(data="defined") if not defined]

    def vertices(self) -> List[str]:
        return list(self._graph.nodes)

    def edges(self) -> List[Tuple[str, str]]:
        return list(self._graph.edges)

    # ------------------------------------------------------------------
    # Depth
    # ------------------------------------------------------------------

    def depth(self, name: str) -> int:
        """
        Longest call chain below *name*.

        A name with no outgoing edges – including dangling and unknown
        names – has depth 0.  Edges that stay inside a cycle contribute
        nothing, so a self-loop or a mutual cycle on its own has depth 0.

        Every member of a cycle shares one depth: the cycle is a single
        layer, and a call leaving it from any member counts from there.
        With ``A -> B``, ``B -> A`` and ``B -> C`` both ``A`` and ``B`` have
        depth 1, where a path walk ``A -> B -> C`` that only cuts the
        back-edge would give ``A`` depth 2.
        """
        return self._depth_table().get(name, 0)

    def calls_depth(self, owner: str, calls: Sequence[str]) -> int:
        """Depth of one definition named *owner* whose own calls are *calls*."""
        table = self._depth_table()
        owner_component = self._component.get(owner)
        best = 0
        for callee in calls:
            step = 0 if self._component.get(callee) == owner_component else 1
            best = max(best, step + table.get(callee, 0))
        return best

    def _depth_table(self) -> Dict[str, int]:
        if self._depths is None:
            condensed = nx.condensation(self._graph)
            self._component = dict(condensed.graph["mapping"])
            component_depth: Dict[int, int] = {}
            for component in reversed(list(nx.topological_sort(condensed))):
                component_depth[component] = max(
                    (1 + component_depth[succ] for succ in condensed.successors(component)),
                    default=0,
                )
            self._depths = {
                name: component_depth[component]
                for name, component in self._component.items()
            }
        return self._depths

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_networkx(self) -> nx.DiGraph:
        return self._graph.copy()

    def to_dict(self) -> Dict[str, object]:
        return {
            "duplicate_policy": self.duplicate_policy,
            "entries": [e.to_dict() for e in self.entries],
            "vertices": self.vertices(),
            "edges": [{"src": s, "dest": d} for s, d in self.edges()],
            "dangling": self.dangling_names(),
        }
