"""Detect numbered reference series and map them onto a path template.

A series such as ``Exhibit A-1 .. Exhibit A-12`` usually lives in files that
differ only by number. Once one member is located with a confident fuzzy
match, the rest are generated from that path and kept only if they exist.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Collection, Sequence

from ..storage.similarity_cache import SimilarityCache
from ..utils import get_logger
from .path_scorer import fuzzy_score

logger = get_logger(__name__)

TEMPLATE_MIN_SCORE = 0.7
SERIES_CONFIDENCE = 0.30
MIN_SERIES_ITEMS = 2

_SERIES_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("exhibit", re.compile(r"^Exhibit\s+([A-Z]+\d*)-(\d+)(?:\s*-\s*(.+))?$", re.IGNORECASE)),
    ("appendix", re.compile(r"^Appendix\s+(\d+)(?:\s+to\s+(.+?))?(?:\s*[-–]\s*(.+))?$", re.IGNORECASE)),
    ("witness", re.compile(r"^([CR]W)-(\d+)\s*(?:-\s*)?(.+)?$", re.IGNORECASE)),
    ("document", re.compile(r"^([A-Z]+)\s*(\d{4,})(?:\s*-\s*(.+))?$")),
]


@dataclass
class SeriesItem:
    reference: str
    kind: str
    series: str
    number: int
    number_text: str
    detail: str = ""
    parent: str = ""


@dataclass
class Series:
    kind: str
    series: str
    items: list[SeriesItem] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.series}"


@dataclass(frozen=True)
class PathTemplate:
    template: str
    padded: bool

    def render(self, item: SeriesItem) -> str:
        path = self.template.replace("{series}", item.series)
        if self.padded:
            return path.replace("{number:02}", f"{item.number:02d}")
        return path.replace("{number}", str(item.number))


def _parse(description: str) -> SeriesItem | None:
    text = str(description or "").strip()
    for kind, pattern in _SERIES_PATTERNS:
        match = pattern.match(text)
        if match is None:
            continue
        if kind == "appendix":
            return SeriesItem(
                reference=description,
                kind=kind,
                series="",
                number=int(match.group(1)),
                number_text=match.group(1),
                parent=match.group(2) or "",
                detail=match.group(3) or "",
            )
        return SeriesItem(
            reference=description,
            kind=kind,
            series=match.group(1),
            number=int(match.group(2)),
            number_text=match.group(2),
            detail=match.group(3) or "",
        )
    return None


def detect_series(descriptions: Sequence[str]) -> dict[str, Series]:
    """Group descriptions into numbered series keyed ``kind:series``."""
    detected: dict[str, Series] = {}
    for description in descriptions:
        item = _parse(description)
        if item is None:
            continue
        series = detected.setdefault(
            f"{item.kind}:{item.series}",
            Series(kind=item.kind, series=item.series),
        )
        series.items.append(item)
    for series in detected.values():
        series.items.sort(key=lambda row: row.number)
    return detected


def extract_path_template(path: str, item: SeriesItem) -> PathTemplate:
    template = path
    number = str(item.number)
    padded = f"{item.number:02d}"
    # Padded form first so "07" is not split into "0{number}".
    if padded != number and padded in template:
        template = template.replace(padded, "{number:02}", 1)
    else:
        template = template.replace(number, "{number}", 1)
    if item.series:
        template = template.replace(item.series, "{series}", 1)
    return PathTemplate(template=template, padded="{number:02}" in template)


def find_path_template(
    series: Series,
    paths: Sequence[str],
    cache: SimilarityCache | None = None,
) -> PathTemplate | None:
    if not series.items:
        return None
    first = series.items[0]
    for path in paths:
        if fuzzy_score(path, first.reference, cache) > TEMPLATE_MIN_SCORE:
            return extract_path_template(path, first)
    return None


def suggest_series_matches(
    descriptions: Sequence[str],
    paths: Sequence[str],
    excluded_paths: Collection[str] | None = None,
) -> list[dict[str, Any]]:
    """Template-based mappings for every series with at least two members.

    Generated paths that are not in the corpus, or are excluded, are dropped.
    """
    excluded = set(excluded_paths or ())
    available = [path for path in paths if path not in excluded]
    known = set(available)
    cache = SimilarityCache()
    results: list[dict[str, Any]] = []
    for key, series in detect_series(descriptions).items():
        if len(series.items) < MIN_SERIES_ITEMS:
            continue
        template = find_path_template(series, available, cache)
        if template is None:
            logger.debug("no path template for series %s", key)
            continue
        mappings = []
        for item in series.items:
            candidate = template.render(item)
            if candidate in known:
                mappings.append(
                    {
                        "reference": item.reference,
                        "suggested_path": candidate,
                        "confidence": SERIES_CONFIDENCE,
                    }
                )
        results.append(
            {
                "series_key": key,
                "kind": series.kind,
                "series": series.series,
                "template": template.template,
                "total_items": len(series.items),
                "mappings": mappings,
            }
        )
    return results
