"""
export_graph.py
===============

Generate nested-call graph files for one or more mapkey files.

For each input the script produces three files under
``outputs/graph/<file-stem>/``:

* ``calls.dot``    – Graphviz DOT source (render with ``dot -Tsvg -o calls.svg calls.dot``)
* ``calls.json``   – Machine-readable graph (nodes + edges with colour codes)
* ``calls.mmd``    – Mermaid flowchart (paste into a GitHub Markdown fenced block)

Color coding
~~~~~~~~~~~~
* **Green  (defined)**   – Mapkey defined in the file.
* **Grey   (dangling)**  – Called but never defined.
* **Red    (cyclic)**    – Part of a circular call chain.
* **Orange (violation)** – Nested deeper than ``--limit``.

Usage
-----
    python scripts/export_graph.py \\
        --sources tests/fixtures/config.pro tests/fixtures/cycles.pro \\
        --limit 5 \\
        --output-dir outputs/graph
"""
from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from mapkey_parser.config import AnalysisConfig
from mapkey_parser.output.graph_export import GraphExporter
from mapkey_parser.pipeline.mapkey_analysis import MapkeyAnalysis


def _try_render_svg(dot_path: Path) -> None:
    """Try to render the DOT file to SVG via Graphviz if available."""
    try:
        svg_path = dot_path.with_suffix(".svg")
        subprocess.run(
            ["dot", "-Tsvg", str(dot_path), "-o", str(svg_path)],
            check=True,
            capture_output=True,
        )
        print(f"    rendered {svg_path}")
    except (FileNotFoundError, subprocess.CalledProcessError) as exc:
        print(f"    skipped SVG ({exc})")


def export_one(source: str, limit: int, output_dir: Path, render_svg: bool) -> None:
    stem = Path(source).stem
    dest = output_dir / stem
    dest.mkdir(parents=True, exist_ok=True)

    analysis = MapkeyAnalysis(AnalysisConfig(nesting_limit=limit))
    text = Path(source).read_text(encoding="utf-8", errors="replace")

    exporter = GraphExporter()
    graph = exporter.build(
        analysis.build_call_graph(text),
        cycles=analysis.find_circular_dependencies(text),
        violations=analysis.nesting_violations(text),
        limit=limit,
    )

    # --- Summary ---
    counts = {status: 0 for status in ("defined", "dangling", "cyclic", "violation")}
    for node in graph.nodes:
        counts[node.status] += 1
    print(
        "  " + "  ".join(f"{status}: {n}" for status, n in counts.items())
        + f"  edges: {len(graph.edges)}"
    )

    dot_path = dest / "calls.dot"
    dot_path.write_text(exporter.to_dot(graph, title=f"{stem} mapkeys"), encoding="utf-8")
    print(f"  wrote   : {dot_path}")
    if render_svg:
        _try_render_svg(dot_path)

    json_path = dest / "calls.json"
    json_path.write_text(exporter.to_json_str(graph), encoding="utf-8")
    print(f"  wrote   : {json_path}")

    mmd_path = dest / "calls.mmd"
    mmd_path.write_text(exporter.to_mermaid(graph, title=f"{stem} mapkeys"), encoding="utf-8")
    print(f"  wrote   : {mmd_path}")


def main() -> None:
    p = argparse.ArgumentParser(
        description="Export mapkey nested-call graphs (DOT / JSON / Mermaid)"
    )
    p.add_argument("--sources", "-s", nargs="+", required=True, metavar="FILE",
                   help="Mapkey file(s) such as config.pro")
    p.add_argument("--limit", type=int, default=5, metavar="N")
    p.add_argument("--output-dir", "-o", default="outputs/graph", metavar="DIR")
    p.add_argument("--render-svg", action="store_true",
                   help="Attempt to auto-render DOT → SVG via Graphviz")
    args = p.parse_args()

    out = Path(args.output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for src in args.sources:
        print(f"\n=== {src} ===")
        export_one(src, args.limit, out, args.render_svg)


if __name__ == "__main__":
    main()
