"""Wildcard-driven filtering and ordering of search results.

``*`` captures any run and ``?`` one character; the first capture becomes the
sort key, numeric when it holds digits (so ``exhibit *`` orders 1, 2, 10).
"""
from __future__ import annotations

import locale
import re
from typing import Sequence

from ..schema.models import RankedMatch
from ..utils import get_logger

logger = get_logger(__name__)

_PATTERN_CHARS_RE = re.compile(r"[*?+\[\](){}|\\^$]")
_DIGITS_RE = re.compile(r"\d+", re.ASCII)
# A space in the pattern stands for any filename separator run.
_SEPARATOR_CLASS = r"[\s_.\-]*"


def has_pattern_chars(term: str) -> bool:
    return bool(_PATTERN_CHARS_RE.search(term or ""))


def strip_pattern_chars(term: str) -> str:
    """Remove pattern metacharacters, leaving the plain words to fuzzy-match on."""
    return " ".join(_PATTERN_CHARS_RE.sub(" ", term or "").split())


def wildcard_to_regex(pattern: str) -> re.Pattern[str] | None:
    parts: list[str] = []
    in_space = False
    for char in pattern.strip():
        if char.isspace():
            if not in_space:
                parts.append(_SEPARATOR_CLASS)
            in_space = True
            continue
        in_space = False
        if char == "*":
            parts.append("(.*)")
        elif char == "?":
            parts.append("(.)")
        else:
            parts.append(re.escape(char))
    try:
        return re.compile("".join(parts), re.IGNORECASE)
    except re.error as exc:
        logger.debug("wildcard pattern %r did not compile: %s", pattern, exc)
        return None


def _file_name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def _sort_key(captured: str) -> tuple[int, int, str]:
    digits = _DIGITS_RE.search(captured)
    if digits:
        return (0, int(digits.group(0)), "")
    return (1, 0, locale.strxfrm(captured.casefold()))


def apply_wildcard_sort(
    results: Sequence[RankedMatch],
    pattern: str,
) -> list[RankedMatch]:
    """Keep results whose file name matches ``pattern`` and order them by capture.

    When nothing matches, the results come back unchanged. Equal keys keep
    their incoming (score) order.
    """
    regex = wildcard_to_regex(pattern)
    if regex is None:
        return list(results)

    matched: list[tuple[RankedMatch, re.Match[str]]] = []
    for item in results:
        found = regex.search(_file_name(item.path))
        if found is not None:
            matched.append((item, found))
    if not matched:
        return list(results)
    if regex.groups == 0:
        return [item for item, _ in matched]

    matched.sort(key=lambda pair: _sort_key(pair[1].group(1) or ""))
    return [item for item, _ in matched]
