"""
SplitLinesPass
==============

Splits raw document text into :class:`~mapkey_parser.models.SourceLine`
records that remember their absolute offset.

Creo writes ``config.pro`` files with either ``\\n`` or ``\\r\\n`` line
endings.  A trailing ``\\r`` is dropped from the line *text* but the offsets
of every following line still account for it, so all tokens address the
original string exactly.
"""
from __future__ import annotations

from typing import List

from ..models import SourceLine


class SplitLinesPass:
    """Splits document text into offset-addressed lines."""

    def run(self, text: str) -> List[SourceLine]:
        """
        Parameters
        ----------
        text:
            The whole document.

        Returns
        -------
        List[SourceLine]
            One entry per physical line.  Empty text yields an empty list;
            a trailing newline does not produce an extra empty line.
        """
        lines: List[SourceLine] = []
        if not text:
            return lines

        offset = 0
        for index, raw in enumerate(text.split("\n")):
            line_text = raw[:-1] if raw.endswith("\r") else raw
            lines.append(SourceLine(index=index, start=offset, text=line_text))
            offset += len(raw) + 1

        if text.endswith("\n"):
            lines.pop()
        return lines
