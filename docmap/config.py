from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from .config_runtime import _apply_env_overrides, _validate_effective_config
from .utils import normalize_path_abs

PROJECT_CONFIG_NAME = "docmap.yaml"
LOCAL_CONFIG_NAME = "docmap.local.yaml"

DEFAULT_PROJECT_CONFIG: dict[str, Any] = {
    "version": 1,
    "search": {
        "result_limit": 50,
        "interactive_result_limit": 20,
        "min_score": 0.05,
        "wildcard_candidate_limit": 100,
        "wildcard_fallback_score": 0.5,
    },
    "auto_match": {
        "min_score": 0.15,
        "candidate_limit": 10,
        "high_confidence": 0.7,
        "medium_confidence": 0.4,
        "progress_every": 10,
    },
    "learning": {
        "enabled": False,
        "learned_weight": 0.2,
    },
}

DEFAULT_LOCAL_CONFIG: dict[str, Any] = {
    "runtime": {
        "similarity_cache_max_entries": 50000,
        "executor": "thread",
        "max_workers": "auto",
        "debounce_ms": 200,
    },
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Failed to parse config file {path}: {exc}") from exc
        if data is None:
            return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be an object: {path}")
    return data


def default_config() -> dict[str, Any]:
    """Built-in defaults, validated, with no file or environment input."""
    merged = _deep_merge(DEFAULT_PROJECT_CONFIG, DEFAULT_LOCAL_CONFIG)
    merged = json.loads(json.dumps(merged))
    _validate_effective_config(merged)
    return merged


def resolve_effective_config(
    project_dir: Path,
    cli_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    project_dir = normalize_path_abs(project_dir)
    project_cfg_path = project_dir / PROJECT_CONFIG_NAME
    env_local = os.environ.get("DOCMAP_LOCAL_CONFIG")
    local_cfg_path = (
        normalize_path_abs(Path(env_local)) if env_local else (project_dir / LOCAL_CONFIG_NAME)
    )

    project_cfg = _load_config_file(project_cfg_path)
    local_cfg = _load_config_file(local_cfg_path)
    merged = _deep_merge(DEFAULT_PROJECT_CONFIG, project_cfg)
    merged = _deep_merge(DEFAULT_LOCAL_CONFIG, merged)
    merged = _deep_merge(merged, local_cfg)
    merged = _apply_env_overrides(merged)
    if cli_overrides:
        merged = _deep_merge(merged, cli_overrides)

    merged["meta"] = dict(merged.get("meta", {}))
    merged["meta"]["project_dir"] = str(project_dir)
    merged["meta"]["project_config_path"] = str(project_cfg_path)
    merged["meta"]["local_config_path"] = str(local_cfg_path)

    _validate_effective_config(merged)
    return merged


def _dump_yaml(path: Path, data: dict[str, Any]) -> None:
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


def init_project(project_dir: Path, force: bool = False) -> dict[str, Any]:
    project_dir = normalize_path_abs(project_dir)
    project_dir.mkdir(parents=True, exist_ok=True)
    project_cfg_path = project_dir / PROJECT_CONFIG_NAME
    local_example_path = project_dir / f"{LOCAL_CONFIG_NAME}.example"

    created: list[str] = []
    skipped: list[str] = []

    for target, payload in (
        (project_cfg_path, DEFAULT_PROJECT_CONFIG),
        (local_example_path, DEFAULT_LOCAL_CONFIG),
    ):
        if force or not target.exists():
            _dump_yaml(target, payload)
            created.append(str(target))
        else:
            skipped.append(str(target))

    gitignore_path = project_dir / ".gitignore"
    existing = gitignore_path.read_text(encoding="utf-8") if gitignore_path.exists() else ""
    if LOCAL_CONFIG_NAME not in existing:
        suffix = "" if existing.endswith("\n") or not existing else "\n"
        gitignore_path.write_text(existing + suffix + LOCAL_CONFIG_NAME + "\n", encoding="utf-8")
        created.append(str(gitignore_path))

    return {"created": created, "skipped": skipped}
