"""
StatementFlattenPass
====================

Reads one statement of a mapkey record – typically the content of an
``@MAPKEY_LABEL`` / ``@MAPKEY_NAME`` / ``@SYSTEM`` tag – that may run across
several continuation lines, and flattens it into a single value.

Flattening rules:
  * The continuation prefix (``mapkey(continued)``) and the trailing escape
    (``\\``) are never part of the value; both are already excluded from
    :attr:`~mapkey_parser.passes.line_classifier.LineLayout.body`.
  * Each surviving fragment is stripped; non-empty fragments are joined with
    a single space.
  * Flattening stops at the first un-escaped ``;``, which also bounds the
    end offset.  ``\\;`` is kept as a literal ``;`` in the value.
  * Flattening also stops after a line that is not escaped (the record ends
    there even without a terminator).
  * Comment lines inside the record are skipped.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .line_classifier import TERMINATOR_RE, LineLayout

_CONTENT_KINDS = ("declaration", "continuation")


@dataclass(frozen=True)
class FlattenedStatement:
    value: str
    start: int
    end: int
    terminated: bool    # True when an un-escaped ``;`` closed the statement


class StatementFlattenPass:
    """Flattens a statement that starts inside one line body."""

    def run(
        self,
        layouts: Sequence[LineLayout],
        line_pos: int,
        column: int,
    ) -> Optional[FlattenedStatement]:
        """
        Parameters
        ----------
        layouts:
            Layouts of every line of one block, in order.
        line_pos:
            Position in *layouts* of the line the statement starts on.
        column:
            Index into that line's ``body`` where the statement content
            begins (just after the tag marker).

        Returns
        -------
        FlattenedStatement or None
            ``None`` when the statement has no content.
        """
        fragments: List[Tuple[int, str]] = []
        terminator_at: Optional[int] = None
        i = line_pos

        while i < len(layouts):
            layout = layouts[i]
            if layout.comment_body or layout.kind not in _CONTENT_KINDS:
                i += 1
                column = 0
                continue

            segment = layout.body[column:]
            m = TERMINATOR_RE.search(segment)
            piece = segment[: m.start()] if m else segment
            text = piece.strip()
            if text:
                lead = len(piece) - len(piece.lstrip())
                fragments.append((layout.body_start + column + lead, text))

            if m:
                terminator_at = layout.body_start + column + m.start()
                break
            if not layout.escaped:
                break
            i += 1
            column = 0

        if not fragments:
            return None

        value = " ".join(text for _, text in fragments).replace("\\;", ";")
        if terminator_at is not None:
            end = terminator_at
        else:
            last_start, last_text = fragments[-1]
            end = last_start + len(last_text)
        return FlattenedStatement(
            value=value,
            start=fragments[0][0],
            end=end,
            terminated=terminator_at is not None,
        )
