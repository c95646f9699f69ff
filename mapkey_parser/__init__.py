"""
Mapkey Parser
=============

A Python parser for PTC Creo ``config.pro`` mapkey macros.  It segments a
document into mapkey records, tokenizes each record with absolute offsets,
builds structured definitions and analyses the nested-call graph for
circular calls and excessive nesting.

Quick start
-----------
>>> from mapkey_parser import MapkeyAnalysis
>>> analysis = MapkeyAnalysis()
>>> definitions = analysis.analyze_file("config.pro")
>>> for d in definitions:
...     print(d.name, d.description, d.called_names)
"""

from typing import List

from .config import DEFAULT_NESTING_LIMIT, AnalysisConfig
from .models import (
    Block,
    FoldingRange,
    MapkeyDefinition,
    NestingViolation,
    TextRange,
    Token,
)
from .pipeline.call_graph import CallGraph
from .pipeline.extract_blocks import ExtractBlocksTask
from .pipeline.mapkey_analysis import MapkeyAnalysis

__version__ = "0.1.0"
__all__ = [
    "AnalysisConfig",
    "Block",
    "CallGraph",
    "ExtractBlocksTask",
    "FoldingRange",
    "MapkeyAnalysis",
    "MapkeyDefinition",
    "NestingViolation",
    "TextRange",
    "Token",
    "parse",
    "tokenize",
    "build_call_graph",
    "find_circular_dependencies",
    "nesting_violations",
]


def parse(text: str) -> List[MapkeyDefinition]:
    return MapkeyAnalysis().parse(text)


def tokenize(text: str) -> List[Token]:
    return MapkeyAnalysis().tokenize(text)


def build_call_graph(text: str) -> CallGraph:
    return MapkeyAnalysis().build_call_graph(text)


def find_circular_dependencies(text: str) -> List[List[str]]:
    return MapkeyAnalysis().find_circular_dependencies(text)


def nesting_violations(text: str, limit: int = DEFAULT_NESTING_LIMIT) -> List[NestingViolation]:
    return MapkeyAnalysis().nesting_violations(text, limit)
