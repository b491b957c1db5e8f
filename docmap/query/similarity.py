from __future__ import annotations

import re
from collections import Counter

from ..storage.similarity_cache import SimilarityCache

_WORD_SPLIT_RE = re.compile(r"[\s/\-_.]+")

WORD_WEIGHT = 0.7
CHAR_WEIGHT = 0.3
LEFT_CONTAINS_SCORE = 0.9
RIGHT_CONTAINS_SCORE = 0.85


def _word_score(left: str, right: str) -> float:
    left_words = _WORD_SPLIT_RE.split(left)
    right_words = _WORD_SPLIT_RE.split(right)
    matches = 0
    for word in right_words:
        if any(word in other or other in word for other in left_words):
            matches += 1
    return matches / max(len(left_words), len(right_words))


def _char_score(left: str, right: str) -> float:
    pool = Counter(left)
    matches = 0
    for char in right:
        if pool[char] > 0:
            pool[char] -= 1
            matches += 1
    return matches / max(len(left), len(right))


def _compute(left: str, right: str) -> float:
    if not left or not right:
        return 0.0
    a = left.lower()
    b = right.lower()
    if a == b:
        return 1.0
    if b in a:
        return LEFT_CONTAINS_SCORE
    if a in b:
        return RIGHT_CONTAINS_SCORE
    return WORD_WEIGHT * _word_score(a, b) + CHAR_WEIGHT * _char_score(a, b)


def string_similarity(
    left: str,
    right: str,
    cache: SimilarityCache | None = None,
) -> float:
    """Score how alike two short strings are, in ``[0, 1]``.

    Case-insensitive. Not symmetric: ``left`` containing ``right`` scores 0.9
    while ``right`` containing ``left`` scores 0.85. Otherwise the score blends
    token overlap (tokens split on whitespace and ``/ - _ .``) with character
    multiset overlap, 0.7 and 0.3.
    """
    if not left or not right:
        return 0.0
    if cache is None:
        return _compute(left, right)
    cached = cache.get(left, right)
    if cached is not None:
        return cached
    value = _compute(left, right)
    cache.put(left, right, value)
    return value
