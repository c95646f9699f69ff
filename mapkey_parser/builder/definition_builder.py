"""
DefinitionBuilder
=================

Converts tokenized :class:`~mapkey_parser.models.Block` objects into
:class:`~mapkey_parser.models.MapkeyDefinition` objects.

Each definition:

* Corresponds to exactly one block (duplicate names stay separate).
* Takes ``description`` / ``label`` / ``system_instruction`` from the
  *first* token of the matching kind; later duplicates in a malformed record
  are ignored.
* Lists every nested call in source order in ``called_names``, duplicates
  included.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..models import Block, MapkeyDefinition, Token

logger = logging.getLogger(__name__)


def _first(tokens: Sequence[Token], kind: str) -> Optional[Token]:
    return next((t for t in tokens if t.kind == kind), None)


class DefinitionBuilder:
    """Builds the structured view of mapkey records."""

    def build_all(self, blocks: List[Block]) -> List[MapkeyDefinition]:
        return [self.build(block) for block in blocks]

    def build(self, block: Block) -> MapkeyDefinition:
        tokens = block.tokens
        description = _first(tokens, "record.description")
        label = _first(tokens, "record.label")
        system = _first(tokens, "record.system_instruction")
        nested = tuple(t for t in tokens if t.kind == "record.nested_call")

        for kind in ("record.description", "record.label"):
            count = sum(1 for t in tokens if t.kind == kind)
            if count > 1:
                logger.debug("%s has %d %s tokens; using the first", block.name, count, kind)

        return MapkeyDefinition(
            name=block.name,
            range=block.range,
            called_names=tuple(t.value for t in nested),
            block=block,
            description=description.value if description else None,
            label=label.value if label else None,
            system_instruction=system.value if system else None,
            name_token=_first(tokens, "record.name"),
            description_token=description,
            label_token=label,
            system_token=system,
            nested_tokens=nested,
        )
