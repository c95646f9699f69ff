"""
ExtractBlocksTask
=================

Orchestrates the text-processing pipeline and returns tokenized
:class:`~mapkey_parser.models.Block` objects.

Pipeline stages:

1. :class:`~mapkey_parser.passes.split_lines.SplitLinesPass`
   – Split the document into offset-addressed lines.
2. :class:`~mapkey_parser.passes.block_segment.BlockSegmentPass`
   – Group lines into one block per mapkey record.
3. :class:`~mapkey_parser.parser.content_tokenizer.ContentTokenizer`
   – Tokenize each block.
4. :class:`~mapkey_parser.passes.document_markers.DocumentMarkerPass`
   – Tokenize comments and region markers outside the blocks.
5. :class:`~mapkey_parser.builder.definition_builder.DefinitionBuilder`
   – Build one definition per block (:meth:`ExtractBlocksTask.parse_text`).

Every stage returns new values; re-running the pipeline on the same text
yields equal results.
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import List

from ..builder.definition_builder import DefinitionBuilder
from ..models import Block, DocumentParse, Token
from ..parser.content_tokenizer import ContentTokenizer
from ..passes.block_segment import BlockSegmentPass
from ..passes.document_markers import DocumentMarkerPass
from ..passes.split_lines import SplitLinesPass

logger = logging.getLogger(__name__)


class ExtractBlocksTask:
    """High-level entry point for the mapkey parsing pipeline."""

    def __init__(self) -> None:
        self._tokenizer = ContentTokenizer()
        self._builder = DefinitionBuilder()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def sections(self, file_path: str) -> List[Block]:
        """Parse a ``config.pro`` **file** and return its mapkey blocks."""
        logger.info("Parsing file: %s", file_path)
        text = Path(file_path).read_text(encoding="utf-8", errors="replace")
        return self.sections_from_text(text)

    def sections_from_text(self, text: str) -> List[Block]:
        """Parse document text and return its tokenized mapkey blocks."""
        return self.parse_text(text).blocks

    def parse_text(self, text: str) -> DocumentParse:
        """
        Run the full pipeline over *text*.

        Returns
        -------
        DocumentParse
            Lines, tokenized blocks, definitions and the globally sorted
            token list (block tokens plus document-level markers).
        """
        lines = SplitLinesPass().run(text)
        segmented = BlockSegmentPass().run(text, lines)

        blocks: List[Block] = [
            dataclasses.replace(block, tokens=tuple(self._tokenizer.tokenize(block)))
            for block in segmented
        ]

        tokens: List[Token] = [t for block in blocks for t in block.tokens]
        tokens.extend(DocumentMarkerPass().run(lines, blocks))
        tokens.sort(key=lambda t: (t.start, t.end, t.kind))

        definitions = self._builder.build_all(blocks)

        unterminated = sum(1 for b in blocks if not b.terminated)
        logger.info(
            "Extracted %d mapkey block(s) (%d unterminated), %d token(s)",
            len(blocks),
            unterminated,
            len(tokens),
        )
        return DocumentParse(
            text=text,
            lines=lines,
            blocks=blocks,
            definitions=definitions,
            tokens=tokens,
        )
