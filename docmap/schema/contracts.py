"""Input contracts for the matching API and the offload boundary.

Collections of the wrong shape are programmer errors and always raise
``TypeError``. Bad members inside a collection raise in ``strict`` mode and
are dropped with a logged warning in ``warn`` mode.
"""
from __future__ import annotations

from typing import Any, Iterable

from ..utils import get_logger
from .models import Reference

logger = get_logger(__name__)

_CONSTRAINT_MODES = {"warn", "strict"}
_CONSTRAINT_MODE_ALIASES = {
    "enforce": "strict",
    "error": "strict",
    "errors": "strict",
    "on": "warn",
    "default": "warn",
}


def normalize_constraint_mode(value: Any, default_mode: str = "strict") -> str:
    token = str(value or default_mode).strip().lower()
    token = _CONSTRAINT_MODE_ALIASES.get(token, token)
    if token in _CONSTRAINT_MODES:
        return token
    fallback = str(default_mode or "strict").strip().lower()
    fallback = _CONSTRAINT_MODE_ALIASES.get(fallback, fallback)
    return fallback if fallback in _CONSTRAINT_MODES else "strict"


def _reject(mode: str, message: str, dropped: list[str]) -> None:
    if mode == "strict":
        raise TypeError(message)
    dropped.append(message)


def _report(label: str, dropped: list[str]) -> None:
    if dropped:
        logger.warning("dropped %d invalid %s entries: %s", len(dropped), label, dropped[0])


def coerce_paths(value: Any, *, mode: str = "strict") -> list[str]:
    """Return ``value`` as a list of path strings, order preserved."""
    mode = normalize_constraint_mode(mode)
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise TypeError(f"paths must be a list of strings, got {type(value).__name__}")
    paths: list[str] = []
    dropped: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str):
            _reject(mode, f"paths[{idx}] must be a string, got {type(item).__name__}", dropped)
            continue
        paths.append(item)
    _report("path", dropped)
    return paths


def coerce_excluded(value: Any, *, mode: str = "strict") -> set[str]:
    """Return the excluded/used path collection as a set; ``None`` means empty."""
    if value is None:
        return set()
    if isinstance(value, (set, frozenset)):
        return set(coerce_paths(list(value), mode=mode))
    return set(coerce_paths(value, mode=mode))


def _as_reference(item: Any) -> Reference | None:
    if isinstance(item, Reference):
        return item
    if isinstance(item, dict):
        return Reference.from_dict(item)
    if isinstance(item, str):
        return Reference.create(item)
    return None


def coerce_references(value: Any, *, mode: str = "strict") -> list[Reference]:
    """Accept ``Reference`` objects, reference dicts or bare description strings."""
    mode = normalize_constraint_mode(mode)
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise TypeError(f"references must be a list, got {type(value).__name__}")
    references: list[Reference] = []
    dropped: list[str] = []
    for idx, item in enumerate(value):
        reference = _as_reference(item)
        if reference is None:
            _reject(
                mode,
                f"references[{idx}] must be a Reference, dict or str, got {type(item).__name__}",
                dropped,
            )
            continue
        references.append(reference)
    _report("reference", dropped)
    return references


def references_payload(references: Iterable[Reference]) -> list[dict[str, Any]]:
    return [item.to_dict() for item in references]
