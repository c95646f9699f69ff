"""
graph_export.py
===============

Render a mapkey :class:`~mapkey_parser.pipeline.call_graph.CallGraph`,
annotated with cycle and nesting results, for documentation.

Graph semantics
---------------
* **Nodes** – one per vertex of the call graph (defined and dangling names).
* **Edges** – one per ``(caller, callee)`` pair; the label counts how many
  times the caller invokes the callee when it does so more than once.
* **Color coding**

  =============  =======  ==============================================
  Status         Color    Meaning
  =============  =======  ==============================================
  ``defined``    Green    Mapkey defined in the document.
  ``dangling``   Grey     Called but never defined.
  ``cyclic``     Red      Part of a circular nested-call chain.
  ``violation``  Orange   Nested deeper than the configured limit.
  =============  =======  ==============================================

  A name both on a cycle and over the nesting limit is shown as ``cyclic``.

Outputs
-------
* **DOT** (Graphviz) – renderable with ``dot -Tsvg -o out.svg graph.dot``.
* **JSON** – machine-readable graph for web renderers or further processing.
* **Mermaid** – embeddable in GitHub Markdown / Notion / Confluence.
"""
from __future__ import annotations

import json
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set

from ..models import NestingViolation
from ..pipeline.call_graph import CallGraph

# ---------------------------------------------------------------------------
# Colour + shape constants
# ---------------------------------------------------------------------------

_FILL = {
    "defined":   "#27AE60",   # emerald green
    "dangling":  "#95A5A6",   # concrete grey
    "cyclic":    "#E74C3C",   # alizarin red
    "violation": "#E67E22",   # carrot orange
}
_DOT_STYLE = {
    "defined":   "filled",
    "dangling":  "filled,dashed",
    "cyclic":    "filled",
    "violation": "filled",
}
_DOT_SHAPE = {
    "defined":   "box",
    "dangling":  "box",
    "cyclic":    "octagon",
    "violation": "box",
}
_EDGE_COLOR = {
    "call":     "#444444",
    "dangling": "#95A5A6",
    "cyclic":   "#E74C3C",
}

_MERMAID_ID_RE = re.compile(r"[^A-Za-z0-9_]")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class GraphNode:
    id: str
    status: str         # "defined" | "dangling" | "cyclic" | "violation"
    depth: int


@dataclass
class GraphEdge:
    from_id: str
    to_id: str
    count: int          # how often the caller invokes the callee
    kind: str           # "call" | "dangling" | "cyclic"


@dataclass
class AnnotatedGraph:
    nodes: List[GraphNode]
    edges: List[GraphEdge]
    cycles: List[List[str]] = field(default_factory=list)
    limit: int = 5


# ---------------------------------------------------------------------------
# GraphExporter
# ---------------------------------------------------------------------------

class GraphExporter:
    """Annotate a :class:`CallGraph` and render it in several formats."""

    def build(
        self,
        graph: CallGraph,
        cycles: Sequence[Sequence[str]] = (),
        violations: Sequence[NestingViolation] = (),
        limit: int = 5,
    ) -> AnnotatedGraph:
        on_cycle: Set[str] = {name for cycle in cycles for name in cycle}
        too_deep: Set[str] = {v.name for v in violations}

        nodes: List[GraphNode] = []
        for name in graph.vertices():
            if not graph.is_defined(name):
                status = "dangling"
            elif name in on_cycle:
                status = "cyclic"
            elif name in too_deep:
                status = "violation"
            else:
                status = "defined"
            nodes.append(GraphNode(id=name, status=status, depth=graph.depth(name)))

        # Edges inside one cycle are highlighted
        cycle_edges: Set[tuple] = set()
        for cycle in cycles:
            cycle_edges.update(zip(cycle, cycle[1:]))

        edges: List[GraphEdge] = []
        for caller in graph.names():
            for callee, count in Counter(graph.calls(caller)).items():
                if (caller, callee) in cycle_edges:
                    kind = "cyclic"
                elif not graph.is_defined(callee):
                    kind = "dangling"
                else:
                    kind = "call"
                edges.append(GraphEdge(caller, callee, count, kind))

        return AnnotatedGraph(
            nodes=nodes,
            edges=edges,
            cycles=[list(c) for c in cycles],
            limit=limit,
        )

    # ------------------------------------------------------------------
    # DOT (Graphviz) renderer
    # ------------------------------------------------------------------

    def to_dot(self, graph: AnnotatedGraph, title: str = "Mapkey call graph") -> str:
        """Render *graph* as a Graphviz DOT string."""
        lines: List[str] = [
            'digraph "mapkeys" {',
            f'    label="{_dot_escape(title)}";',
            '    labelloc=t;',
            '    rankdir=LR;',
            '    node [fontname="Courier New", fontsize=11, margin="0.2,0.1"];',
            '    edge [fontname="Courier New", fontsize=9];',
            '',
        ]

        for node in graph.nodes:
            label = _dot_escape(node.id)
            if node.status == "dangling":
                label += "\\n[UNDEFINED]"
            elif node.status == "violation":
                label += f"\\n[DEPTH {node.depth + 1} > {graph.limit}]"
            attrs = (
                f'label="{label}", '
                f'shape={_DOT_SHAPE[node.status]}, '
                f'style="{_DOT_STYLE[node.status]}", '
                f'fillcolor="{_FILL[node.status]}", '
                'fontcolor="white"'
            )
            lines.append(f'    "{_dot_escape(node.id)}" [{attrs}];')

        lines.append('')

        for edge in graph.edges:
            attrs = [f'color="{_EDGE_COLOR[edge.kind]}"']
            if edge.count > 1:
                attrs.append(f'label="x{edge.count}"')
            if edge.kind == "dangling":
                attrs.append("style=dashed")
            lines.append(
                f'    "{_dot_escape(edge.from_id)}" -> "{_dot_escape(edge.to_id)}" '
                f'[{", ".join(attrs)}];'
            )

        lines.append('}')
        return '\n'.join(lines) + '\n'

    # ------------------------------------------------------------------
    # JSON renderer
    # ------------------------------------------------------------------

    def to_json(self, graph: AnnotatedGraph) -> dict:
        """Render *graph* as a JSON-serialisable dictionary."""
        return {
            "limit": graph.limit,
            "nodes": [
                {
                    "id": n.id,
                    "status": n.status,
                    "depth": n.depth,
                    "color": _FILL[n.status],
                }
                for n in graph.nodes
            ],
            "edges": [
                {
                    "from": e.from_id,
                    "to": e.to_id,
                    "count": e.count,
                    "kind": e.kind,
                    "color": _EDGE_COLOR[e.kind],
                }
                for e in graph.edges
            ],
            "cycles": graph.cycles,
        }

    def to_json_str(self, graph: AnnotatedGraph, indent: int = 2) -> str:
        return json.dumps(self.to_json(graph), indent=indent)

    # ------------------------------------------------------------------
    # Mermaid renderer
    # ------------------------------------------------------------------

    def to_mermaid(self, graph: AnnotatedGraph, title: str = "Mapkey call graph") -> str:
        """
        Render *graph* as a Mermaid flowchart.

        Names are not valid Mermaid identifiers in general, so every node
        gets a positional id (``n0``, ``n1``, ...) and keeps its name as the
        label.
        """
        ids: Dict[str, str] = {
            node.id: f"n{i}_{_MERMAID_ID_RE.sub('_', node.id)}"
            for i, node in enumerate(graph.nodes)
        }
        lines: List[str] = [
            "---",
            f'title: "{_mermaid_escape(title)}"',
            "---",
            "flowchart LR",
        ]

        for node in graph.nodes:
            label = _mermaid_escape(node.id)
            if node.status == "dangling":
                label += "<br/>UNDEFINED"
            lines.append(f'    {ids[node.id]}["{label}"]:::{node.status}')

        lines.append('')

        for edge in graph.edges:
            arrow = "-.->" if edge.kind == "dangling" else "-->"
            label = f'|"x{edge.count}"|' if edge.count > 1 else ""
            lines.append(f"    {ids[edge.from_id]} {arrow}{label} {ids[edge.to_id]}")

        lines.append('')
        lines.append('    classDef defined   fill:#27AE60,color:#fff,stroke:#1e8449')
        lines.append('    classDef dangling  fill:#95A5A6,color:#fff,stroke:#707b7c,stroke-dasharray:5 5')
        lines.append('    classDef cyclic    fill:#E74C3C,color:#fff,stroke:#922b21')
        lines.append('    classDef violation fill:#E67E22,color:#fff,stroke:#a04000')

        return '\n'.join(lines) + '\n'


def _dot_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _mermaid_escape(text: str) -> str:
    return " ".join(text.splitlines()).replace('"', "#quot;")
