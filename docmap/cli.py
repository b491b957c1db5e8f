from __future__ import annotations

import argparse
import json
import platform
import sys
from pathlib import Path
from typing import Any

from .config import init_project, resolve_effective_config
from .indexers.search_index import SearchIndex
from .query.auto_match import auto_match_from_config, filter_suggestions_by_confidence
from .query.series_matcher import suggest_series_matches
from .schema.models import Reference
from .utils import get_logger, normalize_path_abs, normalize_path_str, read_lines, utc_now_iso

logger = get_logger(__name__)


def _print_output(payload: dict[str, Any], output: str) -> None:
    if output == "json":
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        for key, value in payload.items():
            print(f"{key}: {value}")


def _load_paths(path_arg: str | None) -> list[str]:
    if not path_arg:
        return []
    return [normalize_path_str(line) for line in read_lines(normalize_path_abs(Path(path_arg)))]


def _load_references(path_arg: str) -> list[Reference]:
    ref_path = normalize_path_abs(Path(path_arg))
    text = ref_path.read_text(encoding="utf-8")
    try:
        rows = json.loads(text)
    except json.JSONDecodeError:
        return [Reference.create(line) for line in read_lines(ref_path)]
    if not isinstance(rows, list):
        raise ValueError(f"References file must hold a JSON array: {ref_path}")
    return [
        Reference.from_dict(row) if isinstance(row, dict) else Reference.create(str(row))
        for row in rows
    ]


def _config_for(args: argparse.Namespace) -> dict[str, Any]:
    return resolve_effective_config(normalize_path_abs(Path(args.project)))


def cmd_init(args: argparse.Namespace) -> int:
    project_dir = normalize_path_abs(Path(args.project))
    result = init_project(project_dir, force=args.force)
    _print_output({"status": "ok", "project": str(project_dir), **result}, args.output)
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    cfg = _config_for(args)
    doctor: dict[str, Any] = {
        "status": "ok",
        "timestamp_utc": utc_now_iso(),
        "platform": platform.platform(),
        "python": sys.version.split()[0],
        "project_dir": cfg["meta"]["project_dir"],
        "executor": cfg["runtime"]["executor"],
        "max_workers": cfg["runtime"]["max_workers"],
    }
    if args.print_config:
        doctor["effective_config"] = cfg
    _print_output(doctor, args.output)
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    cfg = _config_for(args)
    index = SearchIndex.from_config(_load_paths(args.paths), cfg)
    excluded = set(_load_paths(args.exclude))
    results = index.search(args.query or "", excluded, limit=args.limit)
    _print_output(
        {
            "status": "ok",
            "query": args.query or "",
            "indexed_paths": len(index),
            "result_count": len(results),
            "results": [item.to_dict() for item in results],
        },
        args.output,
    )
    return 0


def cmd_automatch(args: argparse.Namespace) -> int:
    cfg = _config_for(args)
    references = _load_references(args.references)
    paths = _load_paths(args.paths)
    excluded = set(_load_paths(args.exclude))

    def on_progress(info: dict[str, Any]) -> None:
        logger.info("auto-match %s/%s", info["completed"], info["total"])

    result = auto_match_from_config(references, paths, excluded, cfg, on_progress=on_progress)
    payload = result.to_dict()
    if args.min_confidence is not None:
        kept = filter_suggestions_by_confidence(result.suggestions, float(args.min_confidence))
        payload["suggestions"] = [item.to_dict() for item in kept]
    _print_output({"status": "ok", **payload}, args.output)
    return 0


def cmd_series(args: argparse.Namespace) -> int:
    references = _load_references(args.references)
    matches = suggest_series_matches(
        [item.description for item in references],
        _load_paths(args.paths),
        set(_load_paths(args.exclude)),
    )
    _print_output({"status": "ok", "series": matches}, args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docmap",
        description="docmap CLI: fuzzy-match reference descriptions to file paths",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init_parser = sub.add_parser("init", help="Write docmap config templates")
    init_parser.add_argument("--project", default=".", help="Project directory")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing templates")
    init_parser.add_argument("--output", choices=["text", "json"], default="text")
    init_parser.set_defaults(func=cmd_init)

    doctor_parser = sub.add_parser("doctor", help="Print environment diagnostics")
    doctor_parser.add_argument("--project", default=".", help="Project directory")
    doctor_parser.add_argument("--print-config", action="store_true", help="Include effective config")
    doctor_parser.add_argument("--output", choices=["text", "json"], default="text")
    doctor_parser.set_defaults(func=cmd_doctor)

    search_parser = sub.add_parser("search", help="Rank paths against one query")
    search_parser.add_argument("--project", default=".", help="Project directory")
    search_parser.add_argument("--paths", required=True, help="File with one path per line")
    search_parser.add_argument("--query", default="", help="Search text, wildcards allowed")
    search_parser.add_argument("--exclude", help="File with already used paths")
    search_parser.add_argument("--limit", type=int)
    search_parser.add_argument("--output", choices=["text", "json"], default="text")
    search_parser.set_defaults(func=cmd_search)

    auto_parser = sub.add_parser("automatch", help="Suggest one path per reference")
    auto_parser.add_argument("--project", default=".", help="Project directory")
    auto_parser.add_argument("--paths", required=True, help="File with one path per line")
    auto_parser.add_argument("--references", required=True, help="JSON array or one description per line")
    auto_parser.add_argument("--exclude", help="File with already used paths")
    auto_parser.add_argument("--min-confidence", type=float)
    auto_parser.add_argument("--output", choices=["text", "json"], default="text")
    auto_parser.set_defaults(func=cmd_automatch)

    series_parser = sub.add_parser("series", help="Match numbered reference series by path template")
    series_parser.add_argument("--project", default=".", help="Project directory")
    series_parser.add_argument("--paths", required=True, help="File with one path per line")
    series_parser.add_argument("--references", required=True, help="JSON array or one description per line")
    series_parser.add_argument("--exclude", help="File with already used paths")
    series_parser.add_argument("--output", choices=["text", "json"], default="text")
    series_parser.set_defaults(func=cmd_series)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        exit_code = int(args.func(args))
    except (ValueError, TypeError, OSError) as exc:
        _print_output({"status": "error", "error": str(exc)}, getattr(args, "output", "text"))
        exit_code = 2
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
