from __future__ import annotations

from .contracts import (
    coerce_excluded,
    coerce_paths,
    coerce_references,
    normalize_constraint_mode,
    references_payload,
)
from .models import AutoMatchResult, RankedMatch, Reference, Suggestion

__all__ = [
    "AutoMatchResult",
    "RankedMatch",
    "Reference",
    "Suggestion",
    "coerce_excluded",
    "coerce_paths",
    "coerce_references",
    "normalize_constraint_mode",
    "references_payload",
]
