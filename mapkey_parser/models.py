"""
Core data models for the mapkey parser.

Every value produced by the pipeline (lines, tokens, blocks, definitions,
violations) is a frozen dataclass so that repeated parses of the same text
compare equal and nothing downstream can mutate an earlier stage's output.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Token kinds
# ---------------------------------------------------------------------------

TOKEN_KINDS = {
    "record.keyword",             # The ``mapkey`` word on a declaration line
    "record.name",                # Declared record name
    "record.tag",                 # @MAPKEY_NAME / @MAPKEY_LABEL / @SYSTEM marker
    "record.description",         # Flattened @MAPKEY_NAME content
    "record.label",               # Flattened @MAPKEY_LABEL content
    "record.system_instruction",  # Flattened @SYSTEM content
    "record.nested_call",         # Name referenced via %name;
    "record.continuation_marker", # mapkey(continued) prefix or trailing backslash
    "record.terminator",          # Un-escaped ``;``
    "comment",                    # ``!`` comment line
    "region.start",               # !region (document level)
    "region.end",                 # !endregion (document level)
}


@dataclass(frozen=True)
class Token:
    """A typed fragment of the document addressed by half-open offsets."""

    kind: str
    value: str
    start: int
    end: int
    block_id: Optional[str] = None

    def contains(self, position: int) -> bool:
        return self.start <= position < self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "value": self.value,
            "start": self.start,
            "end": self.end,
            "block_id": self.block_id,
        }


# ---------------------------------------------------------------------------
# Source lines and blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceLine:
    """One physical line; ``text`` excludes the ``\\n`` / ``\\r\\n`` terminator."""

    index: int
    start: int
    text: str

    @property
    def end(self) -> int:
        return self.start + len(self.text)


@dataclass(frozen=True)
class TextRange:
    """Half-open ``[start, end)`` range of document offsets."""

    start: int
    end: int

    def contains(self, position: int) -> bool:
        # Inclusive end so a cursor placed just after the last character
        # still belongs to the record.
        return self.start <= position <= self.end

    def overlaps(self, other: TextRange) -> bool:
        return self.start < other.end and other.start < self.end

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Block:
    """
    The complete source extent of one mapkey record.

    ``lines`` holds every physical line claimed for the record, starting with
    the declaration line.  ``terminated`` is False when the segmenter had to
    close the record on a blank line, the next declaration, a foreign line or
    the end of the document instead of an un-escaped final line.
    """

    id: str
    name: str
    start: int
    end: int
    raw_text: str
    lines: Tuple[SourceLine, ...]
    terminated: bool
    tokens: Tuple[Token, ...] = ()

    @property
    def range(self) -> TextRange:
        return TextRange(self.start, self.end)

    @property
    def first_line(self) -> int:
        return self.lines[0].index

    @property
    def last_line(self) -> int:
        return self.lines[-1].index

    def __repr__(self) -> str:
        return (
            f"Block(id={self.id!r}, name={self.name!r}, "
            f"lines={self.first_line}-{self.last_line}, tokens={len(self.tokens)})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start": self.start,
            "end": self.end,
            "first_line": self.first_line,
            "last_line": self.last_line,
            "terminated": self.terminated,
            "tokens": [t.to_dict() for t in self.tokens],
        }


# ---------------------------------------------------------------------------
# MapkeyDefinition – the structured view of one record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MapkeyDefinition:
    """
    A queryable view of one mapkey record.

    The plain values (``description``, ``label``, ``system_instruction``) come
    from the first token of each kind; the token objects themselves are kept
    for consumers that need offsets.
    """

    name: str
    range: TextRange
    called_names: Tuple[str, ...]
    block: Block
    description: Optional[str] = None
    label: Optional[str] = None
    system_instruction: Optional[str] = None
    name_token: Optional[Token] = None
    description_token: Optional[Token] = None
    label_token: Optional[Token] = None
    system_token: Optional[Token] = None
    nested_tokens: Tuple[Token, ...] = ()

    @property
    def tokens(self) -> Tuple[Token, ...]:
        return self.block.tokens

    @property
    def terminated(self) -> bool:
        return self.block.terminated

    def calls(self, name: str) -> bool:
        return name in self.called_names

    def __repr__(self) -> str:
        return (
            f"MapkeyDefinition(name={self.name!r}, "
            f"range={self.range.start}-{self.range.end}, "
            f"calls={list(self.called_names)})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "label": self.label,
            "system_instruction": self.system_instruction,
            "range": self.range.to_dict(),
            "first_line": self.block.first_line,
            "last_line": self.block.last_line,
            "terminated": self.terminated,
            "called_names": list(self.called_names),
        }


# ---------------------------------------------------------------------------
# Analysis results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NestingViolation:
    """A record nested deeper than the configured limit (``depth + 1 > limit``)."""

    name: str
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "depth": self.depth}

    def __str__(self) -> str:
        return f"{self.name:<20} depth {self.depth}"


@dataclass(frozen=True)
class FoldingRange:
    """Zero-based, inclusive line range for a mapkey record or a region."""

    start_line: int
    end_line: int
    kind: str          # "mapkey" | "region"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_line": self.start_line,
            "end_line": self.end_line,
            "kind": self.kind,
        }


@dataclass
class DocumentParse:
    """Everything one parse of a document revision produced."""

    text: str
    lines: List[SourceLine]
    blocks: List[Block]
    definitions: List[MapkeyDefinition]
    tokens: List[Token] = field(default_factory=list)
