"""In-memory learning from confirmed and rejected matches.

Confirmed mappings teach two things: a reference *pattern* (digits folded to
``#``) that tends to map to a path pattern, and individual reference terms
that tend to co-occur with path terms. Both feed a small, capped bonus that
is blended into search scores. The engine is opt-in; without one attached,
search scores are untouched.
"""
from __future__ import annotations

import math
import re
import threading
from collections import deque
from typing import Any, Iterable

from ..schema.models import RankedMatch
from ..utils import get_logger, utc_now_iso

logger = get_logger(__name__)

DEFAULT_LEARNED_WEIGHT = 0.2
MAX_LEARNED_WEIGHT = 0.4
PATTERN_BONUS_CAP = 0.15
TERM_BONUS_CAP = 0.15
PATTERN_BONUS_RATE = 0.03
CONFIRMED_TERM_STEP = 0.1
REJECTED_TERM_STEP = -0.05
HISTORY_LIMIT = 1000
NEGATIVE_SAMPLE_MIN_SCORE = 0.5
NEGATIVE_SAMPLE_LIMIT = 3
# Weights only start adapting once there is enough mostly-successful history.
ADAPT_MIN_MATCHES = 50
ADAPT_FULL_MATCHES = 500
ADAPT_MIN_SUCCESS = 0.8

STOP_WORDS = frozenset({"the", "and", "for", "with", "from", "pdf", "doc", "docx", "txt", "file"})

_DIGITS_RE = re.compile(r"\d+")
_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_SEPARATOR_RUN_RE = re.compile(r"[_-]+")
_VERSION_RE = re.compile(r"\b(?:v|ver|version)\s*#")
_WHITESPACE_RUN_RE = re.compile(r"\s+")
_TERM_SPLIT_RE = re.compile(r"[\s/\-_.]+")


def extract_pattern(text: str) -> str:
    """Shape of a name with numbers folded: ``Exhibit A-12.pdf`` -> ``exhibit a #``."""
    value = str(text or "").lower()
    value = _DIGITS_RE.sub("#", value)
    value = _EXTENSION_RE.sub("", value)
    value = _SEPARATOR_RUN_RE.sub(" ", value)
    value = _VERSION_RE.sub("v#", value)
    value = _WHITESPACE_RUN_RE.sub(" ", value)
    return value.strip()


def extract_terms(text: str) -> list[str]:
    return [
        term
        for term in _TERM_SPLIT_RE.split(str(text or "").lower())
        if len(term) > 2 and term not in STOP_WORDS
    ]


def _default_statistics() -> dict[str, Any]:
    return {
        "total_matches": 0,
        "successful_matches": 0,
        "failed_matches": 0,
        "average_confidence": 0.0,
    }


class LearningEngine:
    def __init__(self, learned_weight: float = DEFAULT_LEARNED_WEIGHT) -> None:
        self._base_weight = float(learned_weight)
        self._learned_weight = self._base_weight
        self._patterns: dict[str, dict[str, int]] = {}
        self._term_mappings: dict[str, dict[str, float]] = {}
        self._history: deque[dict[str, Any]] = deque(maxlen=HISTORY_LIMIT)
        self._statistics = _default_statistics()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "LearningEngine | None":
        """Engine per the ``learning`` config section, or ``None`` when disabled."""
        learning_cfg = dict(config.get("learning", {}))
        if not learning_cfg.get("enabled", False):
            return None
        return cls(float(learning_cfg.get("learned_weight", DEFAULT_LEARNED_WEIGHT)))

    @property
    def learned_weight(self) -> float:
        return self._learned_weight

    def record_match(self, reference: str, path: str, score: float, confirmed: bool = True) -> None:
        reference_pattern = extract_pattern(reference)
        path_pattern = extract_pattern(path)
        with self._lock:
            stats = self._statistics
            stats["total_matches"] += 1
            if confirmed:
                stats["successful_matches"] += 1
            else:
                stats["failed_matches"] += 1
            total = stats["total_matches"]
            stats["average_confidence"] = (
                stats["average_confidence"] * (total - 1) + float(score)
            ) / total

            path_patterns = self._patterns.setdefault(reference_pattern, {})
            path_patterns[path_pattern] = path_patterns.get(path_pattern, 0) + (1 if confirmed else -1)

            step = CONFIRMED_TERM_STEP if confirmed else REJECTED_TERM_STEP
            path_terms = extract_terms(path)
            for ref_term in extract_terms(reference):
                mappings = self._term_mappings.setdefault(ref_term, {})
                for path_term in path_terms:
                    mappings[path_term] = mappings.get(path_term, 0.0) + step

            self._history.append(
                {
                    "reference": reference,
                    "path": path,
                    "score": float(score),
                    "confirmed": bool(confirmed),
                    "timestamp": utc_now_iso(),
                    "reference_pattern": reference_pattern,
                    "path_pattern": path_pattern,
                }
            )
            self._update_weights()
        logger.debug(
            "learned %s: %r -> %r", "match" if confirmed else "rejection", reference_pattern, path_pattern
        )

    def record_confirmation(
        self,
        reference: str,
        chosen: RankedMatch,
        shown: Iterable[RankedMatch] = (),
    ) -> None:
        """Record ``chosen`` as confirmed and the strongest other results shown as rejected."""
        self.record_match(reference, chosen.path, chosen.score, confirmed=True)
        others = [
            item
            for item in shown
            if item.path != chosen.path and item.score > NEGATIVE_SAMPLE_MIN_SCORE
        ]
        for item in others[:NEGATIVE_SAMPLE_LIMIT]:
            self.record_match(reference, item.path, item.score, confirmed=False)

    def _update_weights(self) -> None:
        total = self._statistics["total_matches"]
        success_rate = self._statistics["successful_matches"] / (total or 1)
        if total <= ADAPT_MIN_MATCHES or success_rate <= ADAPT_MIN_SUCCESS:
            return
        data_factor = min(1.0, total / ADAPT_FULL_MATCHES)
        success_factor = max(0.0, (success_rate - ADAPT_MIN_SUCCESS) * 5)
        self._learned_weight = self._base_weight + (
            (MAX_LEARNED_WEIGHT - self._base_weight) * data_factor * success_factor
        )

    def enhance_score(self, reference: str, path: str, base_score: float) -> tuple[float, dict[str, float]]:
        """Blend ``base_score`` with learned bonuses; returns ``(score, breakdown)``."""
        reference_pattern = extract_pattern(reference)
        path_pattern = extract_pattern(path)
        ref_terms = extract_terms(reference)
        path_terms = extract_terms(path)
        with self._lock:
            count = self._patterns.get(reference_pattern, {}).get(path_pattern, 0)
            pattern_bonus = min(PATTERN_BONUS_CAP, math.log(count + 1) * PATTERN_BONUS_RATE) if count > 0 else 0.0

            term_total = 0.0
            term_hits = 0
            for ref_term in ref_terms:
                mappings = self._term_mappings.get(ref_term)
                if not mappings:
                    continue
                for path_term in path_terms:
                    value = mappings.get(path_term, 0.0)
                    if value > 0:
                        term_total += value
                        term_hits += 1
            weight = self._learned_weight

        term_bonus = min(TERM_BONUS_CAP, term_total / math.sqrt(term_hits)) if term_hits else 0.0
        learned_bonus = (pattern_bonus + term_bonus) * weight
        final = min(1.0, float(base_score) * (1 - weight) + learned_bonus)
        return final, {
            "base": float(base_score),
            "pattern": pattern_bonus,
            "term": term_bonus,
            "learned": learned_bonus,
            "final": final,
        }

    def rerank(self, reference: str, results: Iterable[RankedMatch]) -> list[RankedMatch]:
        enhanced = [
            RankedMatch(path=item.path, score=self.enhance_score(reference, item.path, item.score)[0])
            for item in results
        ]
        enhanced.sort(key=lambda item: -item.score)
        return enhanced

    def suggestions(self, reference: str, limit: int = 5) -> list[dict[str, Any]]:
        """Path patterns previously confirmed for references shaped like ``reference``."""
        with self._lock:
            path_patterns = dict(self._patterns.get(extract_pattern(reference), {}))
        ranked = sorted(
            ((pattern, count) for pattern, count in path_patterns.items() if count > 0),
            key=lambda row: -row[1],
        )
        return [
            {"pattern": pattern, "confidence": min(0.9, count * 0.1), "usage": count}
            for pattern, count in ranked[:limit]
        ]

    def term_suggestions(self, reference: str, limit: int = 3) -> list[dict[str, Any]]:
        totals: dict[str, float] = {}
        with self._lock:
            for ref_term in extract_terms(reference):
                for path_term, value in self._term_mappings.get(ref_term, {}).items():
                    if value > CONFIRMED_TERM_STEP:
                        totals[path_term] = totals.get(path_term, 0.0) + value
        ranked = sorted(totals.items(), key=lambda row: -row[1])
        return [
            {"type": "term", "term": term, "confidence": min(0.8, value)}
            for term, value in ranked[:limit]
        ]

    def top_patterns(self, limit: int = 10) -> list[dict[str, Any]]:
        with self._lock:
            rows = [
                {"reference": ref_pattern, "path": path_pattern, "count": count}
                for ref_pattern, path_patterns in self._patterns.items()
                for path_pattern, count in path_patterns.items()
                if count > 0
            ]
        rows.sort(key=lambda row: -row["count"])
        return rows[:limit]

    def statistics(self) -> dict[str, Any]:
        with self._lock:
            observations = sum(
                abs(count) for path_patterns in self._patterns.values() for count in path_patterns.values()
            )
            recent = list(self._history)[-10:]
            payload = {
                "patterns_learned": len(self._patterns),
                "term_mappings": len(self._term_mappings),
                "total_observations": observations,
                "match_history": len(self._history),
                "statistics": dict(self._statistics),
                "learned_weight": self._learned_weight,
                "recent_matches": list(reversed(recent)),
            }
        payload["top_patterns"] = self.top_patterns(5)
        return payload

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "version": 1,
                "exported_at": utc_now_iso(),
                "patterns": {key: dict(value) for key, value in self._patterns.items()},
                "term_mappings": {key: dict(value) for key, value in self._term_mappings.items()},
                "statistics": dict(self._statistics),
                "learned_weight": self._learned_weight,
            }

    def load_dict(self, data: dict[str, Any]) -> None:
        """Merge previously exported learning data into this engine."""
        with self._lock:
            for key, value in dict(data.get("patterns") or {}).items():
                self._patterns[str(key)] = {str(k): int(v) for k, v in dict(value).items()}
            for key, value in dict(data.get("term_mappings") or {}).items():
                self._term_mappings[str(key)] = {str(k): float(v) for k, v in dict(value).items()}
            if data.get("statistics"):
                self._statistics.update(dict(data["statistics"]))
            if data.get("learned_weight") is not None:
                self._learned_weight = float(data["learned_weight"])

    def reset(self) -> None:
        with self._lock:
            self._patterns.clear()
            self._term_mappings.clear()
            self._history.clear()
            self._statistics = _default_statistics()
            self._learned_weight = self._base_weight
