"""
ContentTokenizer
================

Extracts typed :class:`~mapkey_parser.models.Token` objects from one
:class:`~mapkey_parser.models.Block`.

Recognised fragments (tokens may overlap when they are of different kinds):

+-------------------------------+-------------------------------------------+
| Kind                          | Source                                    |
+===============================+===========================================+
| record.keyword                | ``mapkey`` on the declaration line        |
+-------------------------------+-------------------------------------------+
| record.name                   | declared name                             |
+-------------------------------+-------------------------------------------+
| record.tag                    | ``@MAPKEY_NAME`` ``@MAPKEY_LABEL``        |
|                               | ``@SYSTEM`` markers                       |
+-------------------------------+-------------------------------------------+
| record.description            | flattened ``@MAPKEY_NAME`` content        |
| record.label                  | flattened ``@MAPKEY_LABEL`` content       |
| record.system_instruction     | flattened ``@SYSTEM`` content             |
+-------------------------------+-------------------------------------------+
| record.nested_call            | ``name`` in every ``%name;``              |
+-------------------------------+-------------------------------------------+
| record.continuation_marker    | ``mapkey(continued)`` prefix, trailing    |
|                               | ``\\``                                    |
+-------------------------------+-------------------------------------------+
| record.terminator             | every un-escaped ``;``                    |
+-------------------------------+-------------------------------------------+
| comment                       | ``!`` comment lines inside the record     |
+-------------------------------+-------------------------------------------+

A tag whose content is empty emits only its ``record.tag`` token.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List

from ..models import Block, Token
from ..passes.line_classifier import TERMINATOR_RE, LineClassifier, LineLayout
from ..passes.statement_flatten import StatementFlattenPass

logger = logging.getLogger(__name__)

# Tag marker → kind of the flattened content token
TAG_KINDS: Dict[str, str] = {
    "@MAPKEY_NAME": "record.description",
    "@MAPKEY_LABEL": "record.label",
    "@SYSTEM": "record.system_instruction",
}

_TAG_RE = re.compile("|".join(re.escape(tag) for tag in TAG_KINDS))

# %name;  – the name may not contain whitespace, ``;``, ``\`` or another ``%``
_NESTED_CALL_RE = re.compile(r"%([^\s;%\\]+);")


class ContentTokenizer:
    """Tokenizes the content of a single mapkey block."""

    def __init__(self) -> None:
        self._flatten = StatementFlattenPass()

    def tokenize(self, block: Block) -> List[Token]:
        """
        Parameters
        ----------
        block:
            A block produced by
            :class:`~mapkey_parser.passes.block_segment.BlockSegmentPass`.

        Returns
        -------
        List[Token]
            Tokens sorted by ``start`` (ties broken by ``end`` then kind).
        """
        layouts = [LineClassifier.layout(line) for line in block.lines]
        tokens: List[Token] = []

        for layout in layouts:
            tokens.extend(self._structural_tokens(layout, block.id))
        tokens.extend(self._tag_tokens(layouts, block.id))
        for layout in layouts:
            if not layout.comment_body:
                tokens.extend(self._nested_call_tokens(layout, block.id))

        tokens.sort(key=lambda t: (t.start, t.end, t.kind))
        return tokens

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _structural_tokens(layout: LineLayout, block_id: str) -> List[Token]:
        tokens: List[Token] = []

        if layout.kind == "declaration":
            assert layout.marker_start is not None and layout.name_start is not None
            tokens.append(Token(
                "record.keyword", layout.marker_text,
                layout.marker_start, layout.marker_start + len(layout.marker_text),
                block_id,
            ))
            tokens.append(Token(
                "record.name", layout.name or "",
                layout.name_start, layout.name_start + len(layout.name or ""),
                block_id,
            ))
        elif layout.kind == "continuation":
            assert layout.marker_start is not None
            tokens.append(Token(
                "record.continuation_marker", layout.marker_text,
                layout.marker_start, layout.marker_start + len(layout.marker_text),
                block_id,
            ))

        if layout.escape_at is not None:
            tokens.append(Token(
                "record.continuation_marker", "\\",
                layout.escape_at, layout.escape_at + 1,
                block_id,
            ))

        if layout.comment_body:
            if layout.body:
                tokens.append(Token(
                    "comment", layout.body,
                    layout.body_start, layout.body_start + len(layout.body),
                    block_id,
                ))
            return tokens

        for m in TERMINATOR_RE.finditer(layout.body):
            at = layout.body_start + m.start()
            tokens.append(Token("record.terminator", ";", at, at + 1, block_id))
        return tokens

    def _tag_tokens(self, layouts: List[LineLayout], block_id: str) -> List[Token]:
        tokens: List[Token] = []
        # content kind → end offset of the last content token of that kind
        covered: Dict[str, int] = {}

        for pos, layout in enumerate(layouts):
            if layout.comment_body or layout.kind not in ("declaration", "continuation"):
                continue
            for m in _TAG_RE.finditer(layout.body):
                tag = m.group(0)
                kind = TAG_KINDS[tag]
                tag_start = layout.body_start + m.start()
                if tag_start < covered.get(kind, -1):
                    # Inside the content of an earlier tag of the same kind
                    continue

                tokens.append(Token("record.tag", tag, tag_start, tag_start + len(tag), block_id))
                flat = self._flatten.run(layouts, pos, m.end())
                if flat is None:
                    logger.debug("Empty %s in %s", tag, block_id)
                    continue
                tokens.append(Token(kind, flat.value, flat.start, flat.end, block_id))
                covered[kind] = flat.end
        return tokens

    @staticmethod
    def _nested_call_tokens(layout: LineLayout, block_id: str) -> List[Token]:
        if layout.kind not in ("declaration", "continuation"):
            return []
        tokens: List[Token] = []
        for m in _NESTED_CALL_RE.finditer(layout.body):
            start = layout.body_start + m.start(1)
            tokens.append(Token(
                "record.nested_call", m.group(1), start, start + len(m.group(1)), block_id,
            ))
        return tokens
