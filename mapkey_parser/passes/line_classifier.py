"""
LineClassifier
==============

The single place that decides what a physical line of a ``config.pro`` file
*is*.  Every later stage (segmentation, content tokenizing, document markers)
asks this module instead of carrying its own regular expressions.

Mapkey line grammar
-------------------
+----------------------------------------------+-----------------------------+
| Line shape                                   | Classification              |
+==============================================+=============================+
| ``mapkey <name> ...``                        | declaration                 |
+----------------------------------------------+-----------------------------+
| ``mapkey(continued) ...``                    | continuation                |
+----------------------------------------------+-----------------------------+
| ``! ...``                                    | comment                     |
+----------------------------------------------+-----------------------------+
| whitespace only                              | blank                       |
+----------------------------------------------+-----------------------------+
| anything else (ordinary config options)      | other                       |
+----------------------------------------------+-----------------------------+

A line whose content ends with ``\\`` is *escaped*: the statement goes on
with the next line.  A ``!`` comment line only keeps its record open when it
ends in ``;\\``.  A continuation line whose body starts with ``!`` is a
comment carried inside a record.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..models import SourceLine

KEYWORD = "mapkey"
CONTINUATION_PREFIX = "mapkey(continued)"
ESCAPE = "\\"
TERMINATOR = ";"
COMMENT_MARKER = "!"

# ``mapkey`` + whitespace + a name with no whitespace and no terminator.
# ``mapkey(continued)`` never matches because ``(`` is not whitespace.
_DECLARATION_RE = re.compile(r"^(\s*)(mapkey)\s+([^\s;]+)", re.IGNORECASE)
_CONTINUATION_RE = re.compile(r"^(\s*)(mapkey\(continued\))", re.IGNORECASE)
_COMMENT_RE = re.compile(r"^\s*!")

# ``;`` not preceded by a backslash – ``\;`` is a literal semicolon.
TERMINATOR_RE = re.compile(r"(?<!\\);")

LINE_KINDS = {"declaration", "continuation", "comment", "blank", "other"}


def _leading_spaces(text: str) -> int:
    return len(text) - len(text.lstrip())


def _match_declaration(text: str) -> Optional[Tuple[int, int, str]]:
    """Return ``(keyword_col, name_col, name)`` for a declaration line."""
    m = _DECLARATION_RE.match(text)
    if m is None:
        return None
    name = m.group(3)
    # ``mapkey abc\`` – the backslash is the line escape, not part of the name
    if name.endswith(ESCAPE) and not text[m.end(3):].strip() and len(name) > 1:
        name = name[:-1]
    return m.start(2), m.start(3), name


@dataclass(frozen=True)
class LineLayout:
    """
    Offsets of the structural pieces of one line.

    ``body`` is the statement text that follows the keyword+name or the
    continuation prefix, with the trailing escape and surrounding whitespace
    at the right end removed.  ``body_start`` is the document offset of
    ``body[0]``.
    """

    line: SourceLine
    kind: str
    marker_start: Optional[int] = None   # keyword or continuation prefix
    marker_text: str = ""
    name: Optional[str] = None
    name_start: Optional[int] = None
    body_start: int = 0
    body: str = ""
    escape_at: Optional[int] = None      # offset of the trailing backslash
    comment_body: bool = False

    @property
    def escaped(self) -> bool:
        return self.escape_at is not None


class LineClassifier:
    """Stateless predicates over a single line of text."""

    @staticmethod
    def is_blank(text: str) -> bool:
        return not text.strip()

    @staticmethod
    def is_declaration(text: str) -> bool:
        return _DECLARATION_RE.match(text) is not None

    @staticmethod
    def is_continuation(text: str) -> bool:
        return _CONTINUATION_RE.match(text) is not None

    @staticmethod
    def is_comment(text: str) -> bool:
        return _COMMENT_RE.match(text) is not None

    @staticmethod
    def is_escaped(text: str) -> bool:
        """True when the statement continues on the next line."""
        return text.rstrip().endswith(ESCAPE)

    @staticmethod
    def is_comment_escaped(text: str) -> bool:
        """A comment line keeps its record open only when it ends in ``;\\``."""
        return text.rstrip().endswith(TERMINATOR + ESCAPE)

    @classmethod
    def is_terminated(cls, text: str) -> bool:
        return not cls.is_escaped(text)

    @staticmethod
    def declaration_name(text: str) -> Optional[str]:
        found = _match_declaration(text)
        return found[2] if found else None

    @classmethod
    def kind(cls, text: str) -> str:
        if cls.is_blank(text):
            return "blank"
        if cls.is_declaration(text):
            return "declaration"
        if cls.is_continuation(text):
            return "continuation"
        if cls.is_comment(text):
            return "comment"
        return "other"

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    @classmethod
    def layout(cls, line: SourceLine) -> LineLayout:
        """Locate keyword, name, body and escape of *line*."""
        text = line.text
        kind = cls.kind(text)

        if kind in ("blank", "other"):
            return LineLayout(line=line, kind=kind, body_start=line.start)

        if kind == "comment":
            bang = text.index(COMMENT_MARKER)
            return cls._with_body(
                line, kind, bang, marker_start=None, marker_text="",
                comment_body=True,
            )

        if kind == "declaration":
            found = _match_declaration(text)
            assert found is not None
            keyword_col, name_col, name = found
            name_end = name_col + len(name)
            return cls._with_body(
                line,
                kind,
                name_end + _leading_spaces(text[name_end:]),
                marker_start=line.start + keyword_col,
                marker_text=text[keyword_col:keyword_col + len(KEYWORD)],
                name=name,
                name_start=line.start + name_col,
            )

        m = _CONTINUATION_RE.match(text)
        assert m is not None
        body_col = m.end(2) + _leading_spaces(text[m.end(2):])
        return cls._with_body(
            line,
            kind,
            body_col,
            marker_start=line.start + m.start(2),
            marker_text=m.group(2),
            comment_body=text[body_col:].startswith(COMMENT_MARKER),
        )

    @staticmethod
    def _with_body(
        line: SourceLine,
        kind: str,
        body_col: int,
        *,
        marker_start: Optional[int],
        marker_text: str,
        name: Optional[str] = None,
        name_start: Optional[int] = None,
        comment_body: bool = False,
    ) -> LineLayout:
        text = line.text
        content = text.rstrip()
        escape_at: Optional[int] = None
        if content.endswith(ESCAPE) and len(content) > body_col:
            escape_at = line.start + len(content) - 1
            content = content[:-1].rstrip()
        body = content[body_col:] if len(content) > body_col else ""
        return LineLayout(
            line=line,
            kind=kind,
            marker_start=marker_start,
            marker_text=marker_text,
            name=name,
            name_start=name_start,
            body_start=line.start + body_col,
            body=body,
            escape_at=escape_at,
            comment_body=comment_body,
        )
