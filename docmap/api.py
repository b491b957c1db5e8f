"""Function-call surface of the matcher.

``build_index`` once per path corpus, ``search`` per query, ``auto_match``
per bulk request. Inputs and outputs are plain values, so the same calls work
inline or behind :class:`docmap.offload.MatchWorker`.
"""
from __future__ import annotations

from typing import Any, Callable, Collection, Sequence

from .config import default_config
from .indexers.search_index import SearchIndex
from .query.auto_match import auto_match_from_config
from .query.learning import LearningEngine
from .schema.contracts import coerce_excluded, coerce_paths
from .schema.models import AutoMatchResult, RankedMatch, Reference


def build_index(
    paths: Sequence[str],
    config: dict[str, Any] | None = None,
    learning: LearningEngine | None = None,
) -> SearchIndex:
    cfg = config or default_config()
    if learning is None:
        learning = LearningEngine.from_config(cfg)
    return SearchIndex.from_config(coerce_paths(paths), cfg, learning)


def search(
    index: SearchIndex,
    term: str,
    excluded_paths: Collection[str] | None = None,
    limit: int | None = None,
) -> list[RankedMatch]:
    if not isinstance(index, SearchIndex):
        raise TypeError(f"index must be a SearchIndex, got {type(index).__name__}")
    return index.search(term, coerce_excluded(excluded_paths), limit=limit)


def auto_match(
    references: Sequence[Reference | dict[str, Any] | str],
    paths: Sequence[str],
    excluded_paths: Collection[str] | None = None,
    on_progress: Callable[[dict[str, Any]], None] | None = None,
    config: dict[str, Any] | None = None,
) -> AutoMatchResult:
    return auto_match_from_config(
        references,
        paths,
        excluded_paths,
        config or default_config(),
        on_progress=on_progress,
    )
