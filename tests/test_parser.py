"""
Tests for the ContentTokenizer and the DefinitionBuilder.
"""
from __future__ import annotations

import dataclasses
import textwrap

import pytest

from mapkey_parser.builder.definition_builder import DefinitionBuilder
from mapkey_parser.parser.content_tokenizer import ContentTokenizer
from mapkey_parser.passes.block_segment import BlockSegmentPass
from mapkey_parser.passes.split_lines import SplitLinesPass


def _blocks(text: str):
    return BlockSegmentPass().run(text, SplitLinesPass().run(text))


def _tokens(text: str):
    blocks = _blocks(text)
    assert len(blocks) == 1
    return ContentTokenizer().tokenize(blocks[0])


def _of(tokens, kind):
    return [t for t in tokens if t.kind == kind]


def _definitions(text: str):
    tokenizer = ContentTokenizer()
    blocks = [
        dataclasses.replace(b, tokens=tuple(tokenizer.tokenize(b)))
        for b in _blocks(text)
    ]
    return DefinitionBuilder().build_all(blocks)


# ─────────────────────────────────────────────────────────────────────────────
# ContentTokenizer – structural tokens
# ─────────────────────────────────────────────────────────────────────────────


class TestStructuralTokens:
    def test_keyword_and_name(self):
        text = "mapkey $F2 ~ Command `ProCmdModelSave`;"
        tokens = _tokens(text)
        keyword = _of(tokens, "record.keyword")[0]
        name = _of(tokens, "record.name")[0]
        assert (keyword.value, keyword.start, keyword.end) == ("mapkey", 0, 6)
        assert (name.value, name.start, name.end) == ("$F2", 7, 10)

    def test_keyword_keeps_source_case(self):
        tokens = _tokens("MapKey ab ~ x;")
        assert _of(tokens, "record.keyword")[0].value == "MapKey"

    def test_continuation_markers(self):
        text = "mapkey a ~ one;\\\nmapkey(continued) ~ two;"
        tokens = _tokens(text)
        markers = _of(tokens, "record.continuation_marker")
        assert [m.value for m in markers] == ["\\", "mapkey(continued)"]
        for m in markers:
            assert text[m.start:m.end] == m.value

    def test_terminators(self):
        text = "mapkey a ~ one;~ two\\;still two;"
        tokens = _tokens(text)
        terminators = _of(tokens, "record.terminator")
        assert len(terminators) == 2
        assert all(text[t.start] == ";" for t in terminators)
        assert text[terminators[1].start - 1] != "\\"

    def test_comment_inside_record(self):
        text = "mapkey a ~ one;\\\n! pick a folder\nmapkey(continued) ~ two;"
        comments = _of(_tokens(text), "comment")
        assert [c.value for c in comments] == ["! pick a folder"]

    def test_continuation_comment_has_no_terminators(self):
        text = "mapkey a ~ one;\\\nmapkey(continued) ! a; b;\\\nmapkey(continued) ~ two;"
        tokens = _tokens(text)
        comment = _of(tokens, "comment")[0]
        assert comment.value == "! a; b;"
        assert not any(comment.start <= t.start < comment.end for t in _of(tokens, "record.terminator"))

    def test_every_token_carries_block_id(self):
        tokens = _tokens("mapkey a @MAPKEY_LABELx;%b;")
        assert {t.block_id for t in tokens} == {"mapkey_0_a"}

    def test_tokens_sorted_by_start(self):
        text = "mapkey a @MAPKEY_LABELx;%b;\\\nmapkey(continued) @MAPKEY_NAMEy;%c;"
        tokens = _tokens(text)
        starts = [t.start for t in tokens]
        assert starts == sorted(starts)


# ─────────────────────────────────────────────────────────────────────────────
# ContentTokenizer – tags and nested calls
# ─────────────────────────────────────────────────────────────────────────────


class TestTagTokens:
    def test_simple_label(self):
        text = "mapkey X @MAPKEY_LABELcontent;\n"
        labels = _of(_tokens(text), "record.label")
        assert len(labels) == 1
        assert labels[0].value == "content"
        assert text[labels[0].start:labels[0].end] == "content"

    def test_tag_marker_token(self):
        text = "mapkey X @MAPKEY_NAMEhello;"
        tags = _of(_tokens(text), "record.tag")
        assert [t.value for t in tags] == ["@MAPKEY_NAME"]
        assert text[tags[0].start:tags[0].end] == "@MAPKEY_NAME"

    def test_multiline_label_flattened(self):
        text = textwrap.dedent("""\
            mapkey ml @MAPKEY_LABELFirst part\\
            mapkey(continued)   second part\\
            mapkey(continued) third;~ Command `x`;
        """)
        labels = _of(_tokens(text), "record.label")
        assert len(labels) == 1
        assert labels[0].value == "First part second part third"
        assert text[labels[0].start:].startswith("First part")
        assert text[labels[0].end] == ";"

    def test_all_three_tags(self):
        text = "mapkey a @MAPKEY_NAMEDesc;@MAPKEY_LABELLbl;@SYSTEMdir /w;"
        tokens = _tokens(text)
        assert _of(tokens, "record.description")[0].value == "Desc"
        assert _of(tokens, "record.label")[0].value == "Lbl"
        assert _of(tokens, "record.system_instruction")[0].value == "dir /w"

    def test_empty_tag_emits_only_marker(self):
        tokens = _tokens("mapkey a @MAPKEY_LABEL;~ x;")
        assert len(_of(tokens, "record.tag")) == 1
        assert _of(tokens, "record.label") == []

    def test_same_kind_tokens_do_not_overlap(self):
        text = "mapkey a @MAPKEY_LABELone @MAPKEY_LABEL two;@MAPKEY_LABELthree;"
        labels = _of(_tokens(text), "record.label")
        assert [l.value for l in labels] == ["one @MAPKEY_LABEL two", "three"]
        assert labels[0].end <= labels[1].start


class TestNestedCallTokens:
    def test_nested_calls_in_order(self):
        text = "mapkey a %first;~ x;%second;\\\nmapkey(continued) %first;"
        calls = _of(_tokens(text), "record.nested_call")
        assert [c.value for c in calls] == ["first", "second", "first"]
        for c in calls:
            assert text[c.start:c.end] == c.value
            assert text[c.start - 1] == "%"

    def test_percent_without_terminator_is_not_a_call(self):
        assert _of(_tokens("mapkey a ~ 100% done"), "record.nested_call") == []

    def test_calls_in_comment_lines_ignored(self):
        text = "mapkey a ~ x;\\\n! %old;\\\nmapkey(continued) %new;"
        calls = _of(_tokens(text), "record.nested_call")
        assert [c.value for c in calls] == ["new"]

    def test_escaped_terminator_does_not_close_a_call(self):
        assert _of(_tokens("mapkey a ~ %a\\;"), "record.nested_call") == []

    def test_call_after_escaped_semicolon(self):
        calls = _of(_tokens("mapkey a ~ %a\\;%b;"), "record.nested_call")
        assert [c.value for c in calls] == ["b"]


# ─────────────────────────────────────────────────────────────────────────────
# DefinitionBuilder
# ─────────────────────────────────────────────────────────────────────────────


class TestDefinitionBuilder:
    def test_one_definition_per_block(self):
        defs = _definitions("mapkey a ~ x;\nmapkey b ~ y;\nmapkey a ~ z;\n")
        assert [d.name for d in defs] == ["a", "b", "a"]

    def test_fields(self):
        text = "mapkey a @MAPKEY_NAMEDesc;@MAPKEY_LABELLbl;@SYSTEMcls;%b;%c;%b;"
        d = _definitions(text)[0]
        assert d.description == "Desc"
        assert d.label == "Lbl"
        assert d.system_instruction == "cls"
        assert d.called_names == ("b", "c", "b")
        assert d.calls("c")
        assert not d.calls("a")
        assert d.range.start == 0
        assert d.range.end == len(text)
        assert d.terminated

    def test_call_after_closing_comment_not_collected(self):
        text = "mapkey a @MAPKEY_LABELx;\\\n! note without escape\nmapkey(continued) %b;\n"
        d = _definitions(text)[0]
        assert d.called_names == ()
        assert d.block.lines[-1].index == 1
        assert d.terminated

    def test_call_after_escaped_comment_collected(self):
        text = "mapkey a @MAPKEY_LABELx;\\\n! note;\\\nmapkey(continued) %b;\n"
        d = _definitions(text)[0]
        assert d.called_names == ("b",)

    def test_missing_tags_are_none(self):
        d = _definitions("mapkey a ~ x;")[0]
        assert d.description is None
        assert d.label is None
        assert d.system_instruction is None
        assert d.called_names == ()
        assert d.description_token is None

    def test_first_tag_wins(self):
        d = _definitions("mapkey a @MAPKEY_LABELone;@MAPKEY_LABELtwo;")[0]
        assert d.label == "one"
        assert d.label_token.value == "one"

    def test_tokens_are_the_block_tokens(self):
        d = _definitions("mapkey a @MAPKEY_LABELone;%b;")[0]
        assert d.tokens == d.block.tokens
        assert d.name_token.value == "a"
        assert [t.value for t in d.nested_tokens] == ["b"]

    def test_to_dict(self):
        d = _definitions("mapkey a @MAPKEY_LABELone;%b;")[0]
        payload = d.to_dict()
        assert payload["name"] == "a"
        assert payload["label"] == "one"
        assert payload["called_names"] == ["b"]
        assert payload["first_line"] == 0

    @pytest.mark.parametrize("text", ["", "display_mode shade\n", "! only comments\n"])
    def test_no_definitions(self, text):
        assert _definitions(text) == []
