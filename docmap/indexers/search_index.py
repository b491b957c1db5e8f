"""Inverted token index over a fixed set of virtual paths.

The index is built once per path corpus and is read-only afterwards; a new
corpus means a new ``SearchIndex``. Each instance owns its similarity cache.
"""
from __future__ import annotations

import time
from typing import Any, Collection, Iterable, Sequence

from ..query.normalizer import (
    clean_file_name,
    extract_key_terms,
    path_index_tokens,
    query_tokens,
)
from ..query.learning import LearningEngine
from ..query.path_scorer import fuzzy_score, split_path
from ..query.wildcard_sort import apply_wildcard_sort, has_pattern_chars, strip_pattern_chars
from ..schema.models import RankedMatch
from ..storage.similarity_cache import DEFAULT_MAX_ENTRIES, SimilarityCache
from ..utils import get_logger

logger = get_logger(__name__)

DEFAULT_RESULT_LIMIT = 50
DEFAULT_INTERACTIVE_LIMIT = 20
DEFAULT_MIN_SCORE = 0.05
DEFAULT_WILDCARD_CANDIDATE_LIMIT = 100
DEFAULT_WILDCARD_FALLBACK_SCORE = 0.5
BULK_MATCHES_PER_REFERENCE = 5


class SearchIndex:
    def __init__(
        self,
        paths: Iterable[str],
        *,
        result_limit: int = DEFAULT_RESULT_LIMIT,
        interactive_limit: int = DEFAULT_INTERACTIVE_LIMIT,
        min_score: float = DEFAULT_MIN_SCORE,
        wildcard_candidate_limit: int = DEFAULT_WILDCARD_CANDIDATE_LIMIT,
        wildcard_fallback_score: float = DEFAULT_WILDCARD_FALLBACK_SCORE,
        cache: SimilarityCache | None = None,
        learning: LearningEngine | None = None,
    ) -> None:
        # Duplicate paths collapse to their first occurrence.
        self._all_paths: tuple[str, ...] = tuple(dict.fromkeys(paths))
        self._result_limit = max(1, int(result_limit))
        self._interactive_limit = max(1, int(interactive_limit))
        self._min_score = float(min_score)
        self._wildcard_candidate_limit = max(1, int(wildcard_candidate_limit))
        self._wildcard_fallback_score = float(wildcard_fallback_score)
        self._cache = cache if cache is not None else SimilarityCache(DEFAULT_MAX_ENTRIES)
        self._learning = learning
        self._index: dict[str, set[str]] = {}
        self._build()

    @classmethod
    def from_config(
        cls,
        paths: Iterable[str],
        config: dict[str, Any],
        learning: LearningEngine | None = None,
    ) -> "SearchIndex":
        search_cfg = dict(config.get("search", {}))
        runtime_cfg = dict(config.get("runtime", {}))
        return cls(
            paths,
            result_limit=int(search_cfg.get("result_limit", DEFAULT_RESULT_LIMIT)),
            interactive_limit=int(
                search_cfg.get("interactive_result_limit", DEFAULT_INTERACTIVE_LIMIT)
            ),
            min_score=float(search_cfg.get("min_score", DEFAULT_MIN_SCORE)),
            wildcard_candidate_limit=int(
                search_cfg.get("wildcard_candidate_limit", DEFAULT_WILDCARD_CANDIDATE_LIMIT)
            ),
            wildcard_fallback_score=float(
                search_cfg.get("wildcard_fallback_score", DEFAULT_WILDCARD_FALLBACK_SCORE)
            ),
            cache=SimilarityCache(
                int(runtime_cfg.get("similarity_cache_max_entries", DEFAULT_MAX_ENTRIES))
            ),
            learning=learning,
        )

    def _build(self) -> None:
        started = time.perf_counter()
        for path in self._all_paths:
            for token in path_index_tokens(path):
                self._index.setdefault(token, set()).add(path)
        logger.info(
            "indexed %d paths under %d tokens in %.1fms",
            len(self._all_paths),
            len(self._index),
            (time.perf_counter() - started) * 1000.0,
        )

    @property
    def paths(self) -> tuple[str, ...]:
        return self._all_paths

    @property
    def cache(self) -> SimilarityCache:
        return self._cache

    @property
    def learning(self) -> LearningEngine | None:
        return self._learning

    @property
    def token_count(self) -> int:
        return len(self._index)

    def __len__(self) -> int:
        return len(self._all_paths)

    def paths_for_token(self, token: str) -> frozenset[str]:
        return frozenset(self._index.get(token, ()))

    def _available(self, excluded: Collection[str]) -> list[str]:
        if not excluded:
            return list(self._all_paths)
        return [path for path in self._all_paths if path not in excluded]

    def _candidates(self, tokens: Sequence[str]) -> set[str]:
        found: set[str] = set()
        for token in tokens:
            for key, paths in self._index.items():
                if token in key:
                    found.update(paths)
        return found

    def _score(self, path: str, term: str, cleaned_term: str, key_terms: str) -> float:
        file_name, _, _ = split_path(path)
        return max(
            fuzzy_score(path, term, self._cache),
            fuzzy_score(clean_file_name(file_name), cleaned_term, self._cache),
            fuzzy_score(path, key_terms, self._cache),
        )

    def _fuzzy(self, term: str, excluded: Collection[str], limit: int) -> list[RankedMatch]:
        cleaned_term = clean_file_name(term)
        key_terms = extract_key_terms(term)
        candidates = self._candidates(query_tokens(cleaned_term, key_terms))
        if not candidates:
            return []

        scored: list[RankedMatch] = []
        # Corpus order before the stable sort keeps ties deterministic.
        for path in self._all_paths:
            if path not in candidates or path in excluded:
                continue
            score = self._score(path, term, cleaned_term, key_terms)
            if score > self._min_score:
                scored.append(RankedMatch(path=path, score=score))
        scored.sort(key=lambda item: -item.score)
        return scored[:limit]

    def _wildcard(self, term: str, excluded: Collection[str]) -> list[RankedMatch]:
        base_pattern = strip_pattern_chars(term)
        if clean_file_name(base_pattern):
            candidates = self._fuzzy(base_pattern, excluded, self._wildcard_candidate_limit)
        else:
            candidates = [
                RankedMatch(path=path, score=self._wildcard_fallback_score)
                for path in self._available(excluded)
            ]
        return apply_wildcard_sort(candidates, term)

    def search(
        self,
        term: str,
        excluded_paths: Collection[str] | None = None,
        limit: int | None = None,
    ) -> list[RankedMatch]:
        """Rank indexed paths against ``term``, never returning an excluded path.

        A blank term lists every available path with score 0 in corpus order.
        Terms with wildcard/regex characters are filtered and ordered by
        :func:`apply_wildcard_sort`. With a learning engine attached, plain
        results are re-scored with learned bonuses and re-sorted.
        """
        excluded = excluded_paths if excluded_paths is not None else ()
        trimmed = str(term or "").strip()
        if not trimmed:
            return [RankedMatch(path=path, score=0.0) for path in self._available(excluded)]
        if has_pattern_chars(trimmed):
            return self._wildcard(trimmed, excluded)
        max_results = self._result_limit if limit is None else max(1, int(limit))
        results = self._fuzzy(trimmed, excluded, max_results)
        if self._learning is not None:
            results = self._learning.rerank(trimmed, results)
        logger.debug("search %r -> %d results", trimmed, len(results))
        return results

    def fuzzy_search(
        self,
        term: str,
        excluded_paths: Collection[str] | None = None,
        limit: int | None = None,
    ) -> list[RankedMatch]:
        """Score-ordered matches only: no wildcard handling, no learned bonuses.

        Reference descriptions often contain brackets or question marks that
        are not meant as patterns, so auto-match ranks through this entry point.
        """
        trimmed = str(term or "").strip()
        if not trimmed:
            return []
        excluded = excluded_paths if excluded_paths is not None else ()
        max_results = self._result_limit if limit is None else max(1, int(limit))
        return self._fuzzy(trimmed, excluded, max_results)

    def interactive_search(
        self,
        term: str,
        excluded_paths: Collection[str] | None = None,
    ) -> list[RankedMatch]:
        return self.search(term, excluded_paths, limit=self._interactive_limit)

    def bulk_search(
        self,
        descriptions: Sequence[str],
        threshold: float,
        excluded_paths: Collection[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Best match plus up to five runners-up per description, no exclusivity."""
        rows: list[dict[str, Any]] = []
        for description in descriptions:
            matches = [
                item
                for item in self.search(description, excluded_paths)
                if item.score >= threshold
            ]
            if not matches:
                continue
            rows.append(
                {
                    "reference": description,
                    "best_match": matches[0],
                    "all_matches": matches[:BULK_MATCHES_PER_REFERENCE],
                }
            )
        return rows


def build_index(
    paths: Iterable[str],
    config: dict[str, Any] | None = None,
    learning: LearningEngine | None = None,
) -> SearchIndex:
    if config is None:
        return SearchIndex(paths, learning=learning)
    return SearchIndex.from_config(paths, config, learning)
