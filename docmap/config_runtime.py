from __future__ import annotations

import os
from typing import Any

_EXECUTOR_MODES = {"inline", "thread", "process"}


def _cpu_count() -> int:
    return max(1, int(os.cpu_count() or 1))


def _default_max_workers() -> int:
    return max(1, min(8, _cpu_count()))


def resolve_worker_count(value: Any) -> int:
    if str(value or "").strip().lower() in {"", "auto"}:
        return _default_max_workers()
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return _default_max_workers()
    return max(1, parsed)


def normalize_executor_mode(value: Any, default_value: str = "thread") -> str:
    token = str(value or default_value).strip().lower()
    if token in {"sync", "main", "off"}:
        token = "inline"
    if token in _EXECUTOR_MODES:
        return token
    fallback = str(default_value or "thread").strip().lower()
    return fallback if fallback in _EXECUTOR_MODES else "thread"


def _normalize_positive_int(value: Any, default_value: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return int(default_value)
    return parsed if parsed > 0 else int(default_value)


def _normalize_non_negative_int(value: Any, default_value: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return int(default_value)
    return parsed if parsed >= 0 else int(default_value)


def _normalize_bool(value: Any, default_value: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default_value
    text = str(value).strip().lower()
    return text in {"1", "true", "yes", "on"}


def _normalize_ratio(value: Any, default_value: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return float(default_value)
    if parsed < 0.0:
        return 0.0
    if parsed > 1.0:
        return 1.0
    return float(parsed)


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    search = dict(config.get("search", {}))
    auto_match = dict(config.get("auto_match", {}))
    runtime = dict(config.get("runtime", {}))
    learning = dict(config.get("learning", {}))

    if os.environ.get("DOCMAP_RESULT_LIMIT"):
        search["result_limit"] = _normalize_positive_int(
            os.environ["DOCMAP_RESULT_LIMIT"], int(search.get("result_limit", 50))
        )
    if os.environ.get("DOCMAP_MIN_SCORE"):
        search["min_score"] = _normalize_ratio(
            os.environ["DOCMAP_MIN_SCORE"], float(search.get("min_score", 0.05))
        )
    if os.environ.get("DOCMAP_AUTO_MATCH_MIN_SCORE"):
        auto_match["min_score"] = _normalize_ratio(
            os.environ["DOCMAP_AUTO_MATCH_MIN_SCORE"], float(auto_match.get("min_score", 0.15))
        )
    if os.environ.get("DOCMAP_CACHE_MAX_ENTRIES"):
        runtime["similarity_cache_max_entries"] = _normalize_positive_int(
            os.environ["DOCMAP_CACHE_MAX_ENTRIES"],
            int(runtime.get("similarity_cache_max_entries", 50000)),
        )
    if os.environ.get("DOCMAP_EXECUTOR"):
        runtime["executor"] = normalize_executor_mode(
            os.environ["DOCMAP_EXECUTOR"], str(runtime.get("executor", "thread"))
        )
    if os.environ.get("DOCMAP_MAX_WORKERS"):
        runtime["max_workers"] = resolve_worker_count(os.environ["DOCMAP_MAX_WORKERS"])
    if os.environ.get("DOCMAP_DEBOUNCE_MS"):
        runtime["debounce_ms"] = _normalize_non_negative_int(
            os.environ["DOCMAP_DEBOUNCE_MS"], int(runtime.get("debounce_ms", 200))
        )
    if os.environ.get("DOCMAP_LEARNING_ENABLED"):
        learning["enabled"] = _normalize_bool(os.environ["DOCMAP_LEARNING_ENABLED"])

    config["search"] = search
    config["auto_match"] = auto_match
    config["runtime"] = runtime
    config["learning"] = learning
    return config


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be an object")
    return value


def _validate_effective_config(config: dict[str, Any]) -> None:
    try:
        version = int(config.get("version", 0))
    except (TypeError, ValueError):
        version = 0
    if version <= 0:
        raise ValueError("version must be a positive integer")

    search = _section(config, "search")
    search["result_limit"] = _normalize_positive_int(search.get("result_limit", 50), 50)
    search["interactive_result_limit"] = _normalize_positive_int(
        search.get("interactive_result_limit", 20), 20
    )
    search["min_score"] = _normalize_ratio(search.get("min_score", 0.05), 0.05)
    search["wildcard_candidate_limit"] = _normalize_positive_int(
        search.get("wildcard_candidate_limit", 100), 100
    )
    search["wildcard_fallback_score"] = _normalize_ratio(
        search.get("wildcard_fallback_score", 0.5), 0.5
    )
    config["search"] = search

    auto_match = _section(config, "auto_match")
    auto_match["min_score"] = _normalize_ratio(auto_match.get("min_score", 0.15), 0.15)
    auto_match["candidate_limit"] = _normalize_positive_int(
        auto_match.get("candidate_limit", 10), 10
    )
    auto_match["high_confidence"] = _normalize_ratio(
        auto_match.get("high_confidence", 0.7), 0.7
    )
    auto_match["medium_confidence"] = _normalize_ratio(
        auto_match.get("medium_confidence", 0.4), 0.4
    )
    if auto_match["medium_confidence"] > auto_match["high_confidence"]:
        raise ValueError("auto_match.medium_confidence must not exceed auto_match.high_confidence")
    auto_match["progress_every"] = _normalize_positive_int(
        auto_match.get("progress_every", 10), 10
    )
    config["auto_match"] = auto_match

    runtime = _section(config, "runtime")
    runtime["similarity_cache_max_entries"] = _normalize_positive_int(
        runtime.get("similarity_cache_max_entries", 50000), 50000
    )
    runtime["executor"] = normalize_executor_mode(runtime.get("executor", "thread"))
    runtime["max_workers"] = resolve_worker_count(runtime.get("max_workers", "auto"))
    runtime["debounce_ms"] = _normalize_non_negative_int(runtime.get("debounce_ms", 200), 200)
    config["runtime"] = runtime

    learning = _section(config, "learning")
    learning["enabled"] = _normalize_bool(learning.get("enabled", False))
    learning["learned_weight"] = _normalize_ratio(learning.get("learned_weight", 0.2), 0.2)
    config["learning"] = learning
