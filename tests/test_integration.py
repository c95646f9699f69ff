"""
End-to-end integration tests.

These tests run the full pipeline through the MapkeyAnalysis facade, the
graph exporter and the command line against the fixture files.
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

import mapkey_parser
from mapkey_parser import AnalysisConfig, MapkeyAnalysis
from mapkey_parser.cli import main
from mapkey_parser.models import FoldingRange
from mapkey_parser.output.graph_export import GraphExporter

FIXTURES = Path(__file__).parent / "fixtures"


def _read(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class TestEndToEnd:
    """Full pipeline integration tests using fixture files."""

    @pytest.fixture
    def analysis(self):
        return MapkeyAnalysis()

    @pytest.fixture
    def config_text(self):
        return _read("config.pro")

    # ------------------------------------------------------------------
    # config.pro
    # ------------------------------------------------------------------

    def test_definition_names(self, analysis, config_text):
        assert analysis.all_names(config_text) == ["$F2", "sv", "ex"]

    def test_save_all_record(self, analysis, config_text):
        f2 = analysis.find_definitions(config_text, "$F2")[0]
        assert f2.label == "Save all"
        assert f2.description == "Saves every open model"
        assert f2.called_names == ("sv",)
        assert f2.block.first_line == 3
        assert f2.block.last_line == 4

    def test_export_record(self, analysis, config_text):
        ex = analysis.find_definitions(config_text, "ex")[0]
        assert ex.description == "Export drawing to pdf and dxf"
        assert ex.label == "Export"
        assert ex.system_instruction == "copy *.pdf d:/export"
        assert ex.called_names == ("missing", "sv")
        assert ex.terminated

    def test_analyze_file(self, analysis):
        definitions = analysis.analyze_file(str(FIXTURES / "config.pro"))
        assert [d.name for d in definitions] == ["$F2", "sv", "ex"]

    def test_analyze_missing_file_raises(self, analysis, tmp_path):
        with pytest.raises(OSError):
            analysis.analyze_file(str(tmp_path / "nope.pro"))

    def test_find_usages(self, analysis, config_text):
        usages = analysis.find_usages(config_text, "sv")
        assert [d.name for d in usages] == ["$F2", "ex"]
        assert analysis.find_usages(config_text, "ex") == []

    def test_dangling_call_is_edge_and_leaf(self, analysis, config_text):
        graph = analysis.build_call_graph(config_text)
        assert ("ex", "missing") in graph.edges()
        assert graph.dangling_names() == ["missing"]
        assert analysis.depth(config_text, "missing") == 0
        assert analysis.depth(config_text, "ex") == 1

    def test_no_cycles_or_violations(self, analysis, config_text):
        assert analysis.find_circular_dependencies(config_text) == []
        assert analysis.nesting_violations(config_text) == []

    def test_folding_ranges(self, analysis, config_text):
        assert analysis.folding_ranges(config_text) == [
            FoldingRange(2, 7, "region"),
            FoldingRange(3, 4, "mapkey"),
            FoldingRange(8, 12, "mapkey"),
        ]

    def test_unmatched_region_not_folded(self, analysis):
        text = "!endregion\n!region open\nmapkey a ~ x;\n"
        assert analysis.folding_ranges(text) == []

    def test_nested_regions(self, analysis):
        text = "!region outer\n!region inner\n!endregion\n!endregion\n"
        assert analysis.folding_ranges(text) == [
            FoldingRange(0, 3, "region"),
            FoldingRange(1, 2, "region"),
        ]

    # ------------------------------------------------------------------
    # Position lookups
    # ------------------------------------------------------------------

    def test_token_at_nested_call(self, analysis, config_text):
        pos = config_text.index("%sv;") + 1
        token = analysis.token_at(config_text, pos)
        assert token.kind == "record.nested_call"
        assert token.value == "sv"

    def test_token_at_description(self, analysis, config_text):
        pos = config_text.index("every open")
        token = analysis.token_at(config_text, pos)
        assert token.kind == "record.description"

    def test_token_at_gap(self, analysis, config_text):
        pos = config_text.index("display_mode")
        assert analysis.token_at(config_text, pos) is None

    def test_block_and_definition_at(self, analysis, config_text):
        pos = config_text.index("mapkey sv") + 3
        assert analysis.block_at(config_text, pos).name == "sv"
        assert analysis.definition_at(config_text, pos).name == "sv"
        assert analysis.block_at(config_text, 0) is None

    @pytest.mark.parametrize("offset", [-1, 1])
    def test_position_out_of_bounds(self, analysis, config_text, offset):
        pos = -1 if offset < 0 else len(config_text) + offset
        with pytest.raises(IndexError):
            analysis.token_at(config_text, pos)
        with pytest.raises(IndexError):
            analysis.definition_at(config_text, pos)

    def test_end_of_document_is_in_bounds(self, analysis):
        text = "mapkey a ~ x;"
        assert analysis.definition_at(text, len(text)).name == "a"

    # ------------------------------------------------------------------
    # Document-wide properties
    # ------------------------------------------------------------------

    @pytest.mark.parametrize("name", ["config.pro", "cycles.pro", "chain.pro"])
    def test_tokenize_idempotent(self, name):
        text = _read(name)
        assert MapkeyAnalysis().tokenize(text) == MapkeyAnalysis().tokenize(text)

    @pytest.mark.parametrize("name", ["config.pro", "cycles.pro", "chain.pro"])
    def test_tokens_ordered_and_same_kind_disjoint(self, analysis, name):
        tokens = analysis.tokenize(_read(name))
        starts = [t.start for t in tokens]
        assert starts == sorted(starts)
        by_kind = {}
        for t in tokens:
            by_kind.setdefault(t.kind, []).append(t)
        for same in by_kind.values():
            for a, b in zip(same, same[1:]):
                assert a.end <= b.start

    @pytest.mark.parametrize("name", ["config.pro", "cycles.pro", "chain.pro"])
    def test_block_coverage(self, analysis, name):
        text = _read(name)
        definitions = analysis.parse(text)
        for d in definitions:
            assert 0 <= d.range.start <= d.range.end <= len(text)
        for a, b in zip(definitions, definitions[1:]):
            assert not a.range.overlaps(b.range)

    def test_cache_follows_text(self, analysis):
        assert analysis.all_names("mapkey a ~ x;") == ["a"]
        assert analysis.all_names("mapkey b ~ y;") == ["b"]
        assert analysis.build_call_graph("mapkey c %d;").names() == ["c"]

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def test_configured_limit(self):
        text = _read("chain.pro")
        strict = MapkeyAnalysis(AnalysisConfig(nesting_limit=4))
        assert [v.name for v in strict.nesting_violations(text)] == ["r1", "r2"]
        assert [v.name for v in strict.nesting_violations(text, limit=5)] == ["r1"]

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            AnalysisConfig(duplicate_policy="newest")
        with pytest.raises(ValueError):
            AnalysisConfig(nesting_limit=-1)


# ─────────────────────────────────────────────────────────────────────────────
# Module-level shortcuts
# ─────────────────────────────────────────────────────────────────────────────


class TestPackageShortcuts:
    def test_simple_record(self):
        text = "mapkey X @MAPKEY_LABELcontent;\n"
        definitions = mapkey_parser.parse(text)
        assert [d.name for d in definitions] == ["X"]
        labels = [t for t in mapkey_parser.tokenize(text) if t.kind == "record.label"]
        assert [t.value for t in labels] == ["content"]

    def test_self_loop(self):
        text = "mapkey A %A;\n"
        assert mapkey_parser.find_circular_dependencies(text) == [["A", "A"]]
        assert mapkey_parser.build_call_graph(text).depth("A") == 0

    def test_nesting_violations(self):
        text = _read("chain.pro")
        assert [v.name for v in mapkey_parser.nesting_violations(text)] == ["r1"]


# ─────────────────────────────────────────────────────────────────────────────
# GraphExporter
# ─────────────────────────────────────────────────────────────────────────────


class TestGraphExporter:
    def _build(self, name, limit=5):
        text = _read(name)
        analysis = MapkeyAnalysis(AnalysisConfig(nesting_limit=limit))
        exporter = GraphExporter()
        graph = exporter.build(
            analysis.build_call_graph(text),
            cycles=analysis.find_circular_dependencies(text),
            violations=analysis.nesting_violations(text),
            limit=limit,
        )
        return exporter, graph

    def test_statuses(self):
        _, graph = self._build("cycles.pro")
        assert {n.id: n.status for n in graph.nodes} == {
            "self": "cyclic",
            "a": "cyclic",
            "b": "cyclic",
            "c": "defined",
        }

    def test_dangling_and_violation_statuses(self):
        _, graph = self._build("config.pro")
        assert {n.id: n.status for n in graph.nodes}["missing"] == "dangling"
        _, chain = self._build("chain.pro")
        assert {n.id: n.status for n in chain.nodes}["r1"] == "violation"

    def test_edge_kinds(self):
        _, graph = self._build("cycles.pro")
        kinds = {(e.from_id, e.to_id): e.kind for e in graph.edges}
        assert kinds[("self", "self")] == "cyclic"
        assert kinds[("c", "a")] == "call"

    def test_repeated_call_counted(self):
        text = "mapkey a %b;%b;\nmapkey b ~ x;\n"
        analysis = MapkeyAnalysis()
        graph = GraphExporter().build(analysis.build_call_graph(text))
        assert [(e.from_id, e.to_id, e.count) for e in graph.edges] == [("a", "b", 2)]

    def test_dot(self):
        exporter, graph = self._build("config.pro")
        dot = exporter.to_dot(graph)
        assert dot.startswith('digraph "mapkeys" {')
        assert '"ex" -> "missing"' in dot
        assert "style=dashed" in dot
        assert "[UNDEFINED]" in dot

    def test_json(self):
        exporter, graph = self._build("cycles.pro")
        payload = json.loads(exporter.to_json_str(graph))
        assert payload["cycles"] == [["self", "self"], ["a", "b", "a"]]
        assert {n["id"] for n in payload["nodes"]} == {"self", "a", "b", "c"}

    def test_mermaid(self):
        exporter, graph = self._build("config.pro")
        mermaid = exporter.to_mermaid(graph)
        assert "flowchart LR" in mermaid
        assert 'n0__F2["$F2"]:::defined' in mermaid
        assert "-.->" in mermaid
        assert "classDef dangling" in mermaid

    def test_mermaid_title_quotes_escaped(self):
        exporter, graph = self._build("config.pro")
        mermaid = exporter.to_mermaid(graph, title='Calls in "config.pro"\nrev 2')
        assert 'title: "Calls in #quot;config.pro#quot; rev 2"' in mermaid.splitlines()


# ─────────────────────────────────────────────────────────────────────────────
# Command line
# ─────────────────────────────────────────────────────────────────────────────


class TestCli:
    def test_json_report(self, capsys):
        assert main([str(FIXTURES / "config.pro")]) == 0
        report = json.loads(capsys.readouterr().out)
        assert [d["name"] for d in report["definitions"]] == ["$F2", "sv", "ex"]
        assert report["dangling"] == ["missing"]
        assert report["cycles"] == []

    def test_text_report(self, capsys):
        assert main([str(FIXTURES / "cycles.pro"), "--format", "text"]) == 0
        out = capsys.readouterr().out
        assert "CIRCULAR CALLS (2)" in out
        assert "a -> b -> a" in out

    def test_limit_flag(self, capsys):
        assert main([str(FIXTURES / "chain.pro"), "--limit", "4"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert [v["name"] for v in report["nesting_violations"]] == ["r1", "r2"]

    def test_tokens(self, capsys):
        assert main([str(FIXTURES / "chain.pro"), "--tokens"]) == 0
        tokens = json.loads(capsys.readouterr().out)
        assert tokens[0]["kind"] == "record.keyword"

    def test_graph_to_file(self, tmp_path):
        out = tmp_path / "calls.dot"
        assert main([str(FIXTURES / "cycles.pro"), "--graph", "dot", "-o", str(out)]) == 0
        assert out.read_text(encoding="utf-8").startswith("digraph")

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "absent.pro")]) == 1
        assert "no such file" in capsys.readouterr().err

    def test_bad_duplicates_policy(self):
        with pytest.raises(SystemExit) as exc:
            main([str(FIXTURES / "config.pro"), "--duplicates", "last"])
        assert exc.value.code == 2
