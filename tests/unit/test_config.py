from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from docmap.config import default_config, init_project, resolve_effective_config
from docmap.config_runtime import normalize_executor_mode, resolve_worker_count


def test_init_project_writes_templates(tmp_path: Path) -> None:
    result = init_project(tmp_path)
    assert result["created"]
    assert (tmp_path / "docmap.yaml").exists()
    assert (tmp_path / "docmap.local.yaml.example").exists()
    assert "docmap.local.yaml" in (tmp_path / ".gitignore").read_text(encoding="utf-8")

    again = init_project(tmp_path)
    assert len(again["skipped"]) == 2


def test_defaults_without_project_files(tmp_path: Path) -> None:
    cfg = resolve_effective_config(tmp_path)
    assert cfg["search"]["result_limit"] == 50
    assert cfg["search"]["min_score"] == pytest.approx(0.05)
    assert cfg["auto_match"]["min_score"] == pytest.approx(0.15)
    assert cfg["runtime"]["similarity_cache_max_entries"] == 50000
    assert cfg["meta"]["project_dir"] == str(tmp_path)


def test_project_yaml_overrides_defaults(tmp_path: Path) -> None:
    (tmp_path / "docmap.yaml").write_text(
        yaml.safe_dump({"version": 1, "search": {"result_limit": 12}}),
        encoding="utf-8",
    )
    cfg = resolve_effective_config(tmp_path)
    assert cfg["search"]["result_limit"] == 12
    assert cfg["search"]["interactive_result_limit"] == 20


def test_env_overrides_take_priority(tmp_path: Path, monkeypatch) -> None:
    init_project(tmp_path)
    local_cfg = {"runtime": {"max_workers": 7, "executor": "process"}}
    (tmp_path / "docmap.local.yaml").write_text(
        json.dumps(local_cfg, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    monkeypatch.setenv("DOCMAP_MAX_WORKERS", "3")
    monkeypatch.setenv("DOCMAP_EXECUTOR", "sync")
    monkeypatch.setenv("DOCMAP_RESULT_LIMIT", "9")
    monkeypatch.setenv("DOCMAP_AUTO_MATCH_MIN_SCORE", "0.25")

    cfg = resolve_effective_config(tmp_path)
    assert int(cfg["runtime"]["max_workers"]) == 3
    assert cfg["runtime"]["executor"] == "inline"
    assert cfg["search"]["result_limit"] == 9
    assert cfg["auto_match"]["min_score"] == pytest.approx(0.25)


def test_local_config_path_from_env(tmp_path: Path, monkeypatch) -> None:
    other = tmp_path / "elsewhere.yaml"
    other.write_text("runtime:\n  debounce_ms: 50\n", encoding="utf-8")
    monkeypatch.setenv("DOCMAP_LOCAL_CONFIG", str(other))
    cfg = resolve_effective_config(tmp_path)
    assert cfg["runtime"]["debounce_ms"] == 50
    assert cfg["meta"]["local_config_path"] == str(other)


def test_out_of_range_values_are_normalized(tmp_path: Path) -> None:
    (tmp_path / "docmap.yaml").write_text(
        yaml.safe_dump({"version": 1, "search": {"min_score": 3, "result_limit": -4}}),
        encoding="utf-8",
    )
    cfg = resolve_effective_config(tmp_path)
    assert cfg["search"]["min_score"] == 1.0
    assert cfg["search"]["result_limit"] == 50


def test_inverted_confidence_bands_rejected(tmp_path: Path) -> None:
    (tmp_path / "docmap.yaml").write_text(
        yaml.safe_dump(
            {"version": 1, "auto_match": {"high_confidence": 0.3, "medium_confidence": 0.6}}
        ),
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        resolve_effective_config(tmp_path)


def test_unparseable_config_raises_value_error(tmp_path: Path) -> None:
    (tmp_path / "docmap.yaml").write_text("search: [unclosed", encoding="utf-8")
    with pytest.raises(ValueError):
        resolve_effective_config(tmp_path)
    (tmp_path / "docmap.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        resolve_effective_config(tmp_path)


def test_default_config_is_a_fresh_copy() -> None:
    first = default_config()
    first["search"]["result_limit"] = 1
    assert default_config()["search"]["result_limit"] == 50


def test_runtime_normalizers() -> None:
    assert normalize_executor_mode("PROCESS") == "process"
    assert normalize_executor_mode("main") == "inline"
    assert normalize_executor_mode("bogus") == "thread"
    assert resolve_worker_count("4") == 4
    assert resolve_worker_count("0") == 1
    assert 1 <= resolve_worker_count("auto") <= 8


def test_learning_is_opt_in(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("DOCMAP_LEARNING_ENABLED", raising=False)
    cfg = resolve_effective_config(tmp_path)
    assert cfg["learning"] == {"enabled": False, "learned_weight": 0.2}

    monkeypatch.setenv("DOCMAP_LEARNING_ENABLED", "1")
    assert resolve_effective_config(tmp_path)["learning"]["enabled"] is True
