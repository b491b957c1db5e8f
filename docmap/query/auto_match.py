"""Greedy one-path-per-reference suggestion engine.

References with longer descriptions pick first; a path suggested to one
reference is excluded for every later reference in the same run.
"""
from __future__ import annotations

from typing import Any, Callable, Collection, Iterable, Sequence

from ..indexers.search_index import SearchIndex
from .learning import LearningEngine
from ..schema.contracts import coerce_excluded, coerce_paths, coerce_references
from ..schema.models import AutoMatchResult, Reference, Suggestion
from ..utils import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_SCORE = 0.15
DEFAULT_CANDIDATE_LIMIT = 10
DEFAULT_PROGRESS_EVERY = 10
HIGH_CONFIDENCE = 0.7
MEDIUM_CONFIDENCE = 0.4

ProgressFn = Callable[[dict[str, Any]], None]


class AutoMatchCancelled(Exception):
    """Raised when a run is stopped through its ``cancel_check``."""


def _word_count(text: str) -> int:
    return len(str(text or "").split())


def _emit_progress(
    on_progress: ProgressFn | None,
    *,
    completed: int,
    total: int,
    reference: Reference,
) -> None:
    if on_progress is None:
        return
    payload = {
        "completed": completed,
        "total": total,
        "progress": round((completed / total) * 100.0, 2) if total else 100.0,
        "current_reference": reference.description[:50],
    }
    try:
        on_progress(payload)
    except Exception as exc:
        logger.warning("auto-match progress callback failed: %s", exc)


def _progress_interval(total: int, every: int) -> int:
    # Whichever comes first: every N references or every 5% of the run.
    five_percent = max(1, total // 20)
    return max(1, min(int(every), five_percent))


def confidence_counts(
    suggestions: Iterable[Suggestion],
    *,
    high: float = HIGH_CONFIDENCE,
    medium: float = MEDIUM_CONFIDENCE,
) -> dict[str, int]:
    counts = {"high": 0, "medium": 0, "low": 0}
    for item in suggestions:
        if not item.has_path:
            continue
        if item.score > high:
            counts["high"] += 1
        elif item.score >= medium:
            counts["medium"] += 1
        elif item.score > 0:
            counts["low"] += 1
    return counts


def auto_match(
    references: Sequence[Reference | dict[str, Any] | str],
    available_paths: Sequence[str],
    excluded_paths: Collection[str] | None = None,
    *,
    on_progress: ProgressFn | None = None,
    min_score: float = DEFAULT_MIN_SCORE,
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
    progress_every: int = DEFAULT_PROGRESS_EVERY,
    high_confidence: float = HIGH_CONFIDENCE,
    medium_confidence: float = MEDIUM_CONFIDENCE,
    index_factory: Callable[[list[str]], SearchIndex] = SearchIndex,
    cancel_check: Callable[[], bool] | None = None,
) -> AutoMatchResult:
    """Suggest at most one unused path for every reference.

    Every reference gets exactly one suggestion, returned in input order; a
    reference whose best candidate does not beat ``min_score`` gets an empty
    path and score 0. Descriptions are ranked as plain text, never as
    wildcard patterns. ``cancel_check`` is polled before each reference and
    raises :class:`AutoMatchCancelled` once it returns true.
    """
    refs = coerce_references(references)
    paths = coerce_paths(available_paths)
    used = coerce_excluded(excluded_paths)

    if not refs:
        return AutoMatchResult()

    unused = [path for path in paths if path not in used]
    index = index_factory(unused)
    logger.info("auto-match: %d references against %d unused paths", len(refs), len(unused))

    order = sorted(range(len(refs)), key=lambda idx: -_word_count(refs[idx].description))
    suggested_paths: set[str] = set()
    by_position: dict[int, Suggestion] = {}
    total = len(order)
    interval = _progress_interval(total, progress_every)

    for step, position in enumerate(order):
        if cancel_check is not None and cancel_check():
            logger.info("auto-match cancelled after %d of %d references", step, total)
            raise AutoMatchCancelled(f"cancelled after {step} of {total} references")
        reference = refs[position]
        results = index.fuzzy_search(reference.description, suggested_paths, limit=candidate_limit)
        best = results[0] if results else None
        if best is not None and best.score > min_score:
            by_position[position] = Suggestion(
                reference=reference,
                suggested_path=best.path,
                score=best.score,
            )
            suggested_paths.add(best.path)
        else:
            by_position[position] = Suggestion(reference=reference)

        completed = step + 1
        if step % interval == 0 or completed == total:
            _emit_progress(on_progress, completed=completed, total=total, reference=reference)

    suggestions = [by_position[idx] for idx in range(len(refs))]
    counts = confidence_counts(suggestions, high=high_confidence, medium=medium_confidence)
    result = AutoMatchResult(
        suggestions=suggestions,
        total_references=len(refs),
        high_confidence=counts["high"],
        medium_confidence=counts["medium"],
        low_confidence=counts["low"],
    )
    logger.info(
        "auto-match done: high=%d medium=%d low=%d none=%d",
        result.high_confidence,
        result.medium_confidence,
        result.low_confidence,
        result.no_match,
    )
    return result


def auto_match_from_config(
    references: Sequence[Reference | dict[str, Any] | str],
    available_paths: Sequence[str],
    excluded_paths: Collection[str] | None,
    config: dict[str, Any],
    *,
    on_progress: ProgressFn | None = None,
    cancel_check: Callable[[], bool] | None = None,
) -> AutoMatchResult:
    auto_cfg = dict(config.get("auto_match", {}))
    return auto_match(
        references,
        available_paths,
        excluded_paths,
        on_progress=on_progress,
        min_score=float(auto_cfg.get("min_score", DEFAULT_MIN_SCORE)),
        candidate_limit=int(auto_cfg.get("candidate_limit", DEFAULT_CANDIDATE_LIMIT)),
        progress_every=int(auto_cfg.get("progress_every", DEFAULT_PROGRESS_EVERY)),
        high_confidence=float(auto_cfg.get("high_confidence", HIGH_CONFIDENCE)),
        medium_confidence=float(auto_cfg.get("medium_confidence", MEDIUM_CONFIDENCE)),
        index_factory=lambda paths: SearchIndex.from_config(paths, config),
        cancel_check=cancel_check,
    )


def filter_suggestions_by_confidence(
    suggestions: Iterable[Suggestion],
    min_score: float = MEDIUM_CONFIDENCE,
) -> list[Suggestion]:
    return [item for item in suggestions if item.has_path and item.score >= min_score]


def select_high_confidence_suggestions(
    suggestions: Iterable[Suggestion],
    min_score: float = HIGH_CONFIDENCE,
) -> list[Suggestion]:
    return [
        item.with_flags(is_selected=item.has_path and item.score >= min_score)
        for item in suggestions
    ]


def accept_selected(
    suggestions: Iterable[Suggestion],
    used_paths: Collection[str] | None = None,
    learning: LearningEngine | None = None,
) -> dict[str, str]:
    """Turn selected suggestions into ``{reference_id: path}`` mappings.

    Rejected suggestions, empty paths and paths that are already used (or
    already accepted earlier in the list) are skipped. When ``learning`` is
    given, accepted mappings are recorded as confirmed and rejected
    suggestions with a path as rejections.
    """
    taken = set(used_paths or ())
    accepted: dict[str, str] = {}
    for item in suggestions:
        if item.is_rejected and item.has_path and learning is not None:
            learning.record_match(
                item.reference.description, item.suggested_path, item.score, confirmed=False
            )
        if not item.is_selected or item.is_rejected or not item.has_path:
            continue
        if item.suggested_path in taken or item.reference.id in accepted:
            logger.debug("skipping %s: path already committed", item.reference.id)
            continue
        accepted[item.reference.id] = item.suggested_path
        taken.add(item.suggested_path)
        if learning is not None:
            learning.record_match(item.reference.description, item.suggested_path, item.score)
    return accepted
