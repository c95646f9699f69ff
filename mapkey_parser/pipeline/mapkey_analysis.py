"""
MapkeyAnalysis
==============

Full mapkey analysis facade.

Combines :class:`~mapkey_parser.pipeline.extract_blocks.ExtractBlocksTask`
(blocks, tokens, definitions) with the graph analyses of
:mod:`~mapkey_parser.pipeline.graph_analysis` and answers the position and
name lookups editor tooling needs.

One parse and one call graph are cached per document revision (keyed by the
text itself); a different text replaces the cache wholesale.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..config import AnalysisConfig
from ..models import (
    Block,
    DocumentParse,
    FoldingRange,
    MapkeyDefinition,
    NestingViolation,
    Token,
)
from .call_graph import CallGraph
from .extract_blocks import ExtractBlocksTask
from .graph_analysis import build_call_graph, find_cycles, nesting_violations

logger = logging.getLogger(__name__)


class MapkeyAnalysis:
    """
    High-level facade for mapkey analysis.

    Parameters
    ----------
    config:
        Nesting limit and duplicate-name policy.  Defaults to
        :class:`~mapkey_parser.config.AnalysisConfig`.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None) -> None:
        self.config = config or AnalysisConfig()
        self._extractor = ExtractBlocksTask()
        self._parse: Optional[DocumentParse] = None
        self._graph: Optional[CallGraph] = None

    # ------------------------------------------------------------------
    # Pipeline outputs
    # ------------------------------------------------------------------

    def document(self, text: str) -> DocumentParse:
        """Parse *text*, reusing the cached parse of the same revision."""
        if self._parse is None or self._parse.text != text:
            self._parse = self._extractor.parse_text(text)
            self._graph = None
        return self._parse

    def parse(self, text: str) -> List[MapkeyDefinition]:
        return list(self.document(text).definitions)

    def blocks(self, text: str) -> List[Block]:
        return list(self.document(text).blocks)

    def tokenize(self, text: str) -> List[Token]:
        """Every token of the document, sorted by ``start``."""
        return list(self.document(text).tokens)

    def build_call_graph(self, text: str) -> CallGraph:
        doc = self.document(text)
        if self._graph is None:
            self._graph = build_call_graph(doc.definitions, self.config.duplicate_policy)
            dangling = self._graph.dangling_names()
            if dangling:
                logger.info("Calls to undefined mapkeys: %s", ", ".join(dangling))
        return self._graph

    def find_circular_dependencies(self, text: str) -> List[List[str]]:
        return find_cycles(self.build_call_graph(text))

    def nesting_violations(
        self,
        text: str,
        limit: Optional[int] = None,
    ) -> List[NestingViolation]:
        """Definitions deeper than *limit* (default: the configured limit)."""
        graph = self.build_call_graph(text)
        return nesting_violations(
            self.document(text).definitions,
            self.config.nesting_limit if limit is None else limit,
            graph=graph,
        )

    def depth(self, text: str, name: str) -> int:
        return self.build_call_graph(text).depth(name)

    def analyze_file(self, file_path: str) -> List[MapkeyDefinition]:
        """Read and parse a ``config.pro`` file."""
        logger.info("Analysing %s", file_path)
        text = Path(file_path).read_text(encoding="utf-8", errors="replace")
        return self.parse(text)

    # ------------------------------------------------------------------
    # Name lookups
    # ------------------------------------------------------------------

    def all_names(self, text: str) -> List[str]:
        return [d.name for d in self.document(text).definitions]

    def find_definitions(self, text: str, name: str) -> List[MapkeyDefinition]:
        """Every definition declared as *name* (duplicates included)."""
        return [d for d in self.document(text).definitions if d.name == name]

    def find_usages(self, text: str, name: str) -> List[MapkeyDefinition]:
        """Definitions that call *name*."""
        return [d for d in self.document(text).definitions if d.calls(name)]

    # ------------------------------------------------------------------
    # Position lookups
    # ------------------------------------------------------------------

    def token_at(self, text: str, position: int) -> Optional[Token]:
        """
        The narrowest token covering *position*.

        Raises
        ------
        IndexError
            When *position* lies outside ``0..len(text)``.
        """
        self._check_position(text, position)
        covering = [t for t in self.document(text).tokens if t.contains(position)]
        if not covering:
            return None
        return min(covering, key=lambda t: t.end - t.start)

    def block_at(self, text: str, position: int) -> Optional[Block]:
        self._check_position(text, position)
        return next(
            (b for b in self.document(text).blocks if b.range.contains(position)),
            None,
        )

    def definition_at(self, text: str, position: int) -> Optional[MapkeyDefinition]:
        self._check_position(text, position)
        return next(
            (d for d in self.document(text).definitions if d.range.contains(position)),
            None,
        )

    # ------------------------------------------------------------------
    # Folding
    # ------------------------------------------------------------------

    def folding_ranges(self, text: str) -> List[FoldingRange]:
        """
        Multi-line mapkeys plus matched ``!region`` / ``!endregion`` pairs.

        Regions nest: each end marker closes the most recent open start.
        Unmatched markers are ignored.
        """
        doc = self.document(text)
        ranges: List[FoldingRange] = []

        open_regions: List[int] = []
        for token in doc.tokens:
            if token.kind == "region.start":
                open_regions.append(self._line_of(doc, token.start))
            elif token.kind == "region.end" and open_regions:
                start_line = open_regions.pop()
                end_line = self._line_of(doc, token.start)
                if end_line > start_line:
                    ranges.append(FoldingRange(start_line, end_line, "region"))

        for block in doc.blocks:
            if block.last_line > block.first_line:
                ranges.append(FoldingRange(block.first_line, block.last_line, "mapkey"))

        ranges.sort(key=lambda r: (r.start_line, r.end_line))
        return ranges

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_position(text: str, position: int) -> None:
        if not 0 <= position <= len(text):
            raise IndexError(
                f"position {position} outside document bounds 0..{len(text)}"
            )

    @staticmethod
    def _line_of(doc: DocumentParse, offset: int) -> int:
        line_no = 0
        for line in doc.lines:
            if line.start > offset:
                break
            line_no = line.index
        return line_no
