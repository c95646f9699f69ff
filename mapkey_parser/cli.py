"""
Mapkey Parser – command-line interface
======================================

Usage
-----
::

    mapkey-parser FILE [OPTIONS]
    python -m mapkey_parser.cli FILE [OPTIONS]

Options
-------
--format, -f          Output format: ``json`` (default) or ``text``.
--tokens, -t          Emit the token stream instead of definitions.
--graph FMT           Emit the call graph as dot, json or mermaid.
--limit N             Nesting limit for violation checks (default 5).
--duplicates POLICY   How duplicate names resolve: first (default) or all.
--output, -o          Output file path (default: stdout).
--verbose, -v         Enable DEBUG logging.

Examples
--------
::

    mapkey-parser config.pro
    mapkey-parser config.pro -f text --limit 4
    mapkey-parser config.pro --graph dot -o mapkeys.dot
    mapkey-parser config.pro --tokens -o tokens.json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import DEFAULT_NESTING_LIMIT, DUPLICATE_POLICIES, AnalysisConfig
from .pipeline.mapkey_analysis import MapkeyAnalysis


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mapkey-parser",
        description="Mapkey Parser – parse Creo config.pro mapkeys and check nested calls",
    )
    p.add_argument("source", help="config.pro (or other mapkey) file to parse")
    p.add_argument(
        "--format", "-f",
        choices=["json", "text"],
        default="json",
        help="Output format (default: json)",
    )
    p.add_argument(
        "--tokens", "-t",
        action="store_true",
        help="Emit every token with its kind and offsets instead of definitions",
    )
    p.add_argument(
        "--graph",
        choices=["dot", "json", "mermaid"],
        default="",
        metavar="FMT",
        help="Emit the nested-call graph instead: dot, json, or mermaid",
    )
    p.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_NESTING_LIMIT,
        metavar="N",
        help=f"Maximum nesting depth before a mapkey is reported (default: {DEFAULT_NESTING_LIMIT})",
    )
    p.add_argument(
        "--duplicates",
        choices=list(DUPLICATE_POLICIES),
        default="first",
        help="Resolve duplicate mapkey names to the first definition or to all of them",
    )
    p.add_argument(
        "--output", "-o",
        default="-",
        metavar="FILE",
        help="Output file (default: stdout)",
    )
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return p


def _format_text(report: dict) -> str:
    lines: list[str] = []
    for d in report["definitions"]:
        lines.append(
            f"\n{'─'*60}\n"
            f"  Name  : {d['name']}\n"
            f"  Desc  : {d['description'] or ''}\n"
            f"  Label : {d['label'] or ''}\n"
            f"  Lines : {d['first_line'] + 1}-{d['last_line'] + 1}"
            + ("" if d["terminated"] else "  (unterminated)")
            + f"\n  Calls : {', '.join(d['called_names']) or '(none)'}"
        )

    cycles = report["cycles"]
    if cycles:
        lines.append(f"\n{'═'*60}")
        lines.append(f"  CIRCULAR CALLS ({len(cycles)})")
        lines.append(f"{'═'*60}")
        for cycle in cycles:
            lines.append("  " + " -> ".join(cycle))

    violations = report["nesting_violations"]
    if violations:
        lines.append(f"\n{'═'*60}")
        lines.append(f"  NESTING VIOLATIONS (limit {report['limit']})")
        lines.append(f"{'═'*60}")
        for v in violations:
            lines.append(f"  {v['name']:<30} depth {v['depth']}")

    dangling = report["dangling"]
    if dangling:
        lines.append(f"\n{'═'*60}")
        lines.append(f"  UNDEFINED NESTED CALLS ({len(dangling)})")
        lines.append(f"{'═'*60}")
        for name in dangling:
            lines.append(f"  {name}")

    return "\n".join(lines)


def _format_tokens_text(tokens: list[dict]) -> str:
    return "\n".join(
        f"{t['start']:>7}-{t['end']:<7} {t['kind']:<30} {t['value']!r}" for t in tokens
    )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.limit < 1:
        parser.error("--limit must be at least 1")

    source = Path(args.source)
    if not source.is_file():
        print(f"error: no such file: {args.source}", file=sys.stderr)
        return 1

    analysis = MapkeyAnalysis(
        AnalysisConfig(nesting_limit=args.limit, duplicate_policy=args.duplicates)
    )
    try:
        text = source.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        print(f"error: cannot read {args.source}: {exc}", file=sys.stderr)
        return 1

    # ------------------------------------------------------------------
    # Graph mode
    # ------------------------------------------------------------------
    if args.graph:
        from .output.graph_export import GraphExporter

        exporter = GraphExporter()
        graph = exporter.build(
            analysis.build_call_graph(text),
            cycles=analysis.find_circular_dependencies(text),
            violations=analysis.nesting_violations(text),
            limit=args.limit,
        )
        if args.graph == "dot":
            output_text = exporter.to_dot(graph, title=f"{source.name} mapkeys")
        elif args.graph == "mermaid":
            output_text = exporter.to_mermaid(graph, title=f"{source.name} mapkeys")
        else:
            output_text = exporter.to_json_str(graph)
        return _emit(output_text, args.output, "Graph")

    # ------------------------------------------------------------------
    # Token mode
    # ------------------------------------------------------------------
    if args.tokens:
        tokens = [t.to_dict() for t in analysis.tokenize(text)]
        if args.format == "json":
            output_text = json.dumps(tokens, indent=2)
        else:
            output_text = _format_tokens_text(tokens)
        return _emit(output_text, args.output, "Tokens")

    # ------------------------------------------------------------------
    # Definition report
    # ------------------------------------------------------------------
    report = {
        "file": str(source),
        "limit": args.limit,
        "duplicate_policy": args.duplicates,
        "definitions": [d.to_dict() for d in analysis.parse(text)],
        "cycles": analysis.find_circular_dependencies(text),
        "nesting_violations": [v.to_dict() for v in analysis.nesting_violations(text)],
        "dangling": analysis.build_call_graph(text).dangling_names(),
    }
    if args.format == "json":
        output_text = json.dumps(report, indent=2)
    else:
        output_text = _format_text(report)
    return _emit(output_text, args.output, "Output")


def _emit(output_text: str, output: str, what: str) -> int:
    if output == "-":
        print(output_text)
    else:
        Path(output).write_text(output_text, encoding="utf-8")
        print(f"{what} written to {output}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
