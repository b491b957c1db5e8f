from __future__ import annotations

import re

_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_PREFIX_RE = re.compile(r"^\w+-", re.ASCII)
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_VERSION_RE = re.compile(r"_v\d+", re.ASCII)
_SEPARATOR_RUN_RE = re.compile(r"[_-]+")
_WHITESPACE_RUN_RE = re.compile(r"\s+")
# Structured identifiers first: APPENDIX-2-001, CW-12, A5-01, then bare numbers.
_KEY_TERM_RE = re.compile(r"[A-Z]+-?\d+-\d+|[A-Z]+-?\d+|\d{3,}", re.ASCII)
_TOKEN_SPLIT_RE = re.compile(r"[\s/]+")


def clean_file_name(text: str) -> str:
    """Normalize a name for comparison.

    Drops the extension, a leading ``word-`` prefix, the first ``YYYY-MM-DD``
    stamp and the first ``_v<digits>`` suffix, then folds ``_``/``-`` and
    whitespace runs to single spaces and lowercases.
    """
    if not text:
        return ""
    value = _EXTENSION_RE.sub("", text)
    value = _PREFIX_RE.sub("", value, count=1)
    value = _DATE_RE.sub("", value, count=1)
    value = _VERSION_RE.sub("", value, count=1)
    value = _SEPARATOR_RUN_RE.sub(" ", value)
    value = _WHITESPACE_RUN_RE.sub(" ", value)
    return value.strip().lower()


def extract_key_terms(text: str) -> str:
    """Return the identifier-like terms of ``text`` joined by spaces.

    Falls back to :func:`clean_file_name` when nothing matches.
    """
    if not text:
        return ""
    matches = [match.group(0) for match in _KEY_TERM_RE.finditer(text)]
    if matches:
        return " ".join(matches)
    return clean_file_name(text)


def path_index_tokens(path: str) -> set[str]:
    """Tokens a path is filed under in the search index."""
    path_tokens = clean_file_name(path.replace("/", " ")).split(" ")
    key_tokens = extract_key_terms(path).lower().split(" ")
    return {token for token in (*path_tokens, *key_tokens) if len(token) > 1}


def query_tokens(cleaned_term: str, key_terms: str) -> list[str]:
    """Tokens used to pull candidates for a query, in first-seen order."""
    raw = [
        *_TOKEN_SPLIT_RE.split(cleaned_term),
        *_TOKEN_SPLIT_RE.split(key_terms.lower()),
    ]
    return list(dict.fromkeys(token for token in raw if len(token) > 1))
