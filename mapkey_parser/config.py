"""
Analysis configuration.

Callers configure the analysis through :class:`AnalysisConfig` (or the
matching CLI flags); nothing is read from disk or the environment here.
"""
from __future__ import annotations

from dataclasses import dataclass

# Creo refuses to run mapkeys nested more than five layers deep.
DEFAULT_NESTING_LIMIT = 5

# How a called name is resolved when several records share it:
#   first – the first definition in document order owns the name
#   all   – every definition sharing the name contributes its calls
DUPLICATE_POLICIES = ("first", "all")


@dataclass(frozen=True)
class AnalysisConfig:
    nesting_limit: int = DEFAULT_NESTING_LIMIT
    duplicate_policy: str = "first"

    def __post_init__(self) -> None:
        if self.duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(
                f"duplicate_policy must be one of {DUPLICATE_POLICIES}, "
                f"got {self.duplicate_policy!r}"
            )
        if self.nesting_limit < 0:
            raise ValueError(f"nesting_limit must be >= 0, got {self.nesting_limit}")
