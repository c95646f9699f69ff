"""
BlockSegmentPass
================

Groups the lines of a ``config.pro`` document into one
:class:`~mapkey_parser.models.Block` per mapkey record.

The pass is a small state machine driven by
:class:`~mapkey_parser.passes.line_classifier.LineClassifier`:

``scanning``
    A declaration line opens a block and moves to ``in-continuation``;
    every other line is skipped.

``in-continuation``
    * continuation line, escaped                 → claim it, stay
    * continuation line, not escaped             → claim it, ``closed``
    * comment line ending in ``;\\``              → claim it, stay
    * any other comment line                     → claim it, ``closed``
    * blank, declaration or other line           → ``closed`` without claiming

    A comment line is always part of the record it follows; unless it ends
    in ``;\\`` it is the record's final line.

``closed``
    Emit the block and return to ``scanning``; an unclaimed line is
    examined again, so two adjacent declarations give two blocks.

Running off the end of the document while ``in-continuation`` closes the
record best-effort as well.  Nothing here raises: malformed input always
yields blocks.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from ..models import Block, SourceLine
from .line_classifier import LineClassifier

logger = logging.getLogger(__name__)

SCANNING = "scanning"
IN_CONTINUATION = "in-continuation"
CLOSED = "closed"


class BlockSegmentPass:
    """Partitions document lines into non-overlapping mapkey blocks."""

    def run(self, text: str, lines: List[SourceLine]) -> List[Block]:
        """
        Parameters
        ----------
        text:
            The document the *lines* were split from (used for ``raw_text``).
        lines:
            Output of :class:`~mapkey_parser.passes.split_lines.SplitLinesPass`.

        Returns
        -------
        List[Block]
            Blocks in document order.  Tokens are attached later by the
            content tokenizer.
        """
        blocks: List[Block] = []
        state = SCANNING
        claimed: List[SourceLine] = []
        # Whether the last claimed line keeps the record open
        escaped = False
        i = 0

        while i < len(lines):
            line = lines[i]

            if state == SCANNING:
                if LineClassifier.is_declaration(line.text):
                    claimed = [line]
                    escaped = LineClassifier.is_escaped(line.text)
                    state = IN_CONTINUATION
                i += 1
                continue

            # state == IN_CONTINUATION
            kind = LineClassifier.kind(line.text)
            if kind == "comment":
                claimed.append(line)
                i += 1
                escaped = LineClassifier.is_comment_escaped(line.text)
                if not escaped:
                    state = CLOSED
            elif kind == "continuation":
                claimed.append(line)
                i += 1
                escaped = LineClassifier.layout(line).escaped
                if not escaped:
                    state = CLOSED
            else:
                # blank / declaration / other – the line is not ours
                state = CLOSED

            if state == CLOSED:
                blocks.append(self._make_block(text, claimed, escaped))
                state = SCANNING

        if state == IN_CONTINUATION:
            blocks.append(self._make_block(text, claimed, escaped))

        logger.debug("Segmented %d mapkey block(s) from %d line(s)", len(blocks), len(lines))
        return blocks

    # ------------------------------------------------------------------

    @staticmethod
    def _make_block(text: str, claimed: List[SourceLine], escaped: bool) -> Block:
        first, last = claimed[0], claimed[-1]
        terminated = not escaped
        name: Optional[str] = LineClassifier.declaration_name(first.text)
        assert name is not None
        if not terminated:
            logger.debug(
                "Mapkey %r (line %d) closed without an un-escaped final line",
                name,
                first.index + 1,
            )
        return Block(
            id=f"mapkey_{first.index}_{name}",
            name=name,
            start=first.start,
            end=last.end,
            raw_text=text[first.start:last.end],
            lines=tuple(claimed),
            terminated=terminated,
        )
