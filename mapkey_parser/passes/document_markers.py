"""
DocumentMarkerPass
==================

Tokenizes the lines that no mapkey block claimed: ``!`` comment lines and
the ``!region`` / ``!endregion`` markers used to fold groups of mapkeys.

A region marker line yields both a ``comment`` token (the whole comment)
and a ``region.start`` / ``region.end`` token (the marker word with its
title).
"""
from __future__ import annotations

import re
from typing import List, Sequence

from ..models import Block, SourceLine, Token
from .line_classifier import LineClassifier

_REGION_START_RE = re.compile(r"^\s*!\s*(region\b.*?)\s*$", re.IGNORECASE)
_REGION_END_RE = re.compile(r"^\s*!\s*(endregion\b.*?)\s*$", re.IGNORECASE)


class DocumentMarkerPass:
    """Emits document-level tokens for lines outside every block."""

    def run(self, lines: Sequence[SourceLine], blocks: Sequence[Block]) -> List[Token]:
        claimed = {line.index for block in blocks for line in block.lines}
        tokens: List[Token] = []

        for line in lines:
            if line.index in claimed or not LineClassifier.is_comment(line.text):
                continue
            layout = LineClassifier.layout(line)
            comment = line.text[layout.body_start - line.start:].rstrip()
            tokens.append(Token("comment", comment, layout.body_start,
                                layout.body_start + len(comment)))

            for kind, pattern in (("region.start", _REGION_START_RE),
                                  ("region.end", _REGION_END_RE)):
                m = pattern.match(line.text)
                if m:
                    tokens.append(Token(kind, m.group(1), line.start + m.start(1),
                                        line.start + m.end(1)))
        return tokens
