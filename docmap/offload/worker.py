"""Run searches and auto-match jobs off the caller's thread.

The matching functions are pure, so the same code runs inline, on a thread
pool or (auto-match only) in a process pool. Whatever the mode, a failed
submission falls back to running inline.
"""
from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass
from typing import Any, Callable, Collection, Iterable, Sequence

from ..config_runtime import normalize_executor_mode, resolve_worker_count
from ..indexers.search_index import SearchIndex
from ..query.auto_match import AutoMatchCancelled, accept_selected, auto_match_from_config
from ..query.learning import LearningEngine
from ..schema.contracts import coerce_excluded, coerce_paths, coerce_references, references_payload
from ..schema.models import AutoMatchResult, RankedMatch, Reference, Suggestion
from ..utils import get_logger
from .callbacks import MatchProgressCallback, NoOpCallback, safe_callback_call
from .job_manager import JobManager, MatchJob

logger = get_logger(__name__)


def run_auto_match_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Auto-match over plain values; the process-pool entry point."""
    result = auto_match_from_config(
        [Reference.from_dict(row) for row in payload.get("references", [])],
        list(payload.get("paths", [])),
        set(payload.get("excluded", [])),
        dict(payload.get("config") or {}),
    )
    return result.to_dict()


@dataclass(frozen=True)
class SearchReply:
    request_id: int
    term: str
    results: list[RankedMatch]
    stale: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "term": self.term,
            "stale": self.stale,
            "results": [item.to_dict() for item in self.results],
        }


def _completed_future(fn: Callable[..., Any], *args: Any) -> Future:
    future: Future = Future()
    try:
        future.set_result(fn(*args))
    except Exception as exc:
        future.set_exception(exc)
    return future


class MatchWorker:
    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        mode: str | None = None,
        max_workers: int | str | None = None,
        job_manager: JobManager | None = None,
    ) -> None:
        self._config = dict(config or {})
        runtime_cfg = dict(self._config.get("runtime", {}))
        self._mode = normalize_executor_mode(mode or runtime_cfg.get("executor", "thread"))
        workers = resolve_worker_count(
            max_workers if max_workers is not None else runtime_cfg.get("max_workers", "auto")
        )
        self._jobs = job_manager or JobManager()
        self._learning = LearningEngine.from_config(self._config)
        self._index_lock = threading.Lock()
        self._index = SearchIndex.from_config([], self._config, self._learning)
        self._request_lock = threading.Lock()
        self._latest_request_id = 0
        self._thread_pool: ThreadPoolExecutor | None = None
        self._process_pool: ProcessPoolExecutor | None = None
        if self._mode != "inline":
            self._thread_pool = ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="docmap-match"
            )
        if self._mode == "process":
            self._process_pool = ProcessPoolExecutor(max_workers=workers)
        logger.debug("match worker started: mode=%s workers=%d", self._mode, workers)

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def jobs(self) -> JobManager:
        return self._jobs

    @property
    def learning(self) -> LearningEngine | None:
        return self._learning

    @property
    def index(self) -> SearchIndex:
        with self._index_lock:
            return self._index

    def load_paths(self, paths: Iterable[str]) -> SearchIndex:
        """Build an index for a new corpus and swap it in.

        Searches already running keep the index they started with.
        """
        fresh = SearchIndex.from_config(coerce_paths(list(paths)), self._config, self._learning)
        with self._index_lock:
            self._index = fresh
        logger.info("search index swapped: %d paths", len(fresh))
        return fresh

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _next_request_id(self) -> int:
        with self._request_lock:
            self._latest_request_id += 1
            return self._latest_request_id

    def is_stale(self, request_id: int) -> bool:
        with self._request_lock:
            return request_id < self._latest_request_id

    def _submit(self, executor: Executor | None, fn: Callable[..., Any], *args: Any) -> Future:
        if executor is None:
            return _completed_future(fn, *args)
        try:
            return executor.submit(fn, *args)
        except RuntimeError as exc:
            logger.warning("executor unavailable (%s), running inline", exc)
            return _completed_future(fn, *args)

    def submit_search(
        self,
        term: str,
        excluded_paths: Collection[str] | None = None,
        *,
        limit: int | None = None,
        callback: Callable[[SearchReply], None] | None = None,
    ) -> Future:
        """Queue a search; replies superseded by a newer request come back ``stale``.

        ``callback`` only sees replies that are still current.
        """
        request_id = self._next_request_id()
        index = self.index
        excluded = coerce_excluded(excluded_paths)

        def task() -> SearchReply:
            if self.is_stale(request_id):
                return SearchReply(request_id=request_id, term=term, results=[], stale=True)
            results = index.search(term, excluded, limit=limit)
            reply = SearchReply(
                request_id=request_id,
                term=term,
                results=results,
                stale=self.is_stale(request_id),
            )
            if callback is not None and not reply.stale:
                try:
                    callback(reply)
                except Exception as exc:
                    logger.warning("search callback failed: %s", exc)
            return reply

        return self._submit(self._thread_pool, task)

    def search(
        self,
        term: str,
        excluded_paths: Collection[str] | None = None,
        limit: int | None = None,
    ) -> list[RankedMatch]:
        return self.index.search(term, coerce_excluded(excluded_paths), limit=limit)

    def accept(
        self,
        suggestions: Iterable[Suggestion],
        used_paths: Collection[str] | None = None,
    ) -> dict[str, str]:
        """Commit selected suggestions, teaching the learning engine when enabled."""
        return accept_selected(suggestions, coerce_excluded(used_paths), self._learning)

    # ------------------------------------------------------------------
    # Auto-match
    # ------------------------------------------------------------------

    def _cancelled(self, job: MatchJob) -> AutoMatchCancelled:
        job.add_event("cancelled", {"completed_references": job.completed_references})
        logger.info("auto-match job %s cancelled", job.job_id)
        return AutoMatchCancelled(f"job {job.job_id} was cancelled")

    def _run_auto_match_job(
        self,
        job: MatchJob,
        callback: MatchProgressCallback,
        references: list[Reference],
        paths: list[str],
        excluded: set[str],
    ) -> AutoMatchResult:
        if not job.mark_running(len(references)):
            raise self._cancelled(job)
        job.add_event("started", {"total_references": len(references)})
        safe_callback_call(callback, "on_start", job.job_id, len(references))

        def on_progress(info: dict[str, Any]) -> None:
            job.update_progress(
                int(info["completed"]), int(info["total"]), str(info["current_reference"])
            )
            safe_callback_call(
                callback,
                "on_progress",
                job.job_id,
                int(info["completed"]),
                int(info["total"]),
                str(info["current_reference"]),
            )

        try:
            result = auto_match_from_config(
                references,
                paths,
                excluded,
                self._config,
                on_progress=on_progress,
                cancel_check=job.is_terminal,
            )
        except AutoMatchCancelled:
            raise self._cancelled(job) from None
        except Exception as exc:
            job.mark_failed(str(exc))
            job.add_event("failed", {"error": str(exc)})
            safe_callback_call(callback, "on_error", job.job_id, str(exc))
            raise
        if not self._finish_job(job, callback, result):
            raise self._cancelled(job)
        return result

    def _finish_job(
        self, job: MatchJob, callback: MatchProgressCallback, result: AutoMatchResult
    ) -> bool:
        summary = {
            key: value for key, value in result.to_dict().items() if key != "suggestions"
        }
        if not job.try_mark_completed(summary):
            return False
        job.add_event("completed", summary)
        safe_callback_call(callback, "on_complete", job.job_id, summary)
        return True

    def _auto_match_in_process(
        self,
        job: MatchJob,
        callback: MatchProgressCallback,
        references: list[Reference],
        paths: list[str],
        excluded: set[str],
    ) -> Future:
        """Run in the process pool; progress arrives only once, on completion."""
        outer: Future = Future()
        if not job.mark_running(len(references)):
            outer.set_exception(self._cancelled(job))
            return outer
        payload = {
            "references": references_payload(references),
            "paths": paths,
            "excluded": sorted(excluded),
            "config": self._config,
        }
        job.add_event("started", {"total_references": len(references), "mode": "process"})
        safe_callback_call(callback, "on_start", job.job_id, len(references))

        def finish(inner: Future) -> None:
            try:
                result = AutoMatchResult.from_dict(inner.result())
            except BrokenProcessPool as exc:
                logger.warning("process pool broke (%s), running auto-match inline", exc)
                try:
                    outer.set_result(
                        self._run_auto_match_job(job, callback, references, paths, excluded)
                    )
                except Exception as inline_exc:
                    outer.set_exception(inline_exc)
                return
            except Exception as exc:
                job.mark_failed(str(exc))
                safe_callback_call(callback, "on_error", job.job_id, str(exc))
                outer.set_exception(exc)
                return
            if job.is_terminal():
                outer.set_exception(self._cancelled(job))
                return
            total = len(references)
            last = references[-1].description[:50] if references else ""
            job.update_progress(total, total, last)
            safe_callback_call(callback, "on_progress", job.job_id, total, total, last)
            if self._finish_job(job, callback, result):
                outer.set_result(result)
            else:
                outer.set_exception(self._cancelled(job))

        try:
            inner = self._process_pool.submit(run_auto_match_payload, payload)  # type: ignore[union-attr]
        except RuntimeError as exc:
            logger.warning("process pool unavailable (%s), running auto-match inline", exc)
            return _completed_future(
                self._run_auto_match_job, job, callback, references, paths, excluded
            )
        inner.add_done_callback(finish)
        return outer

    def submit_auto_match(
        self,
        references: Sequence[Reference | dict[str, Any] | str],
        excluded_paths: Collection[str] | None = None,
        *,
        paths: Sequence[str] | None = None,
        callback: MatchProgressCallback | None = None,
    ) -> tuple[MatchJob, Future]:
        """Start an auto-match job; ``paths`` defaults to the loaded corpus."""
        refs = coerce_references(references)
        corpus = coerce_paths(list(paths)) if paths is not None else list(self.index.paths)
        excluded = coerce_excluded(excluded_paths)
        job = self._jobs.create_job()
        cb = callback or NoOpCallback()
        if self._process_pool is not None:
            return job, self._auto_match_in_process(job, cb, refs, corpus, excluded)
        future = self._submit(
            self._thread_pool, self._run_auto_match_job, job, cb, refs, corpus, excluded
        )
        return job, future

    def shutdown(self, wait: bool = True) -> None:
        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=wait)
        if self._process_pool is not None:
            self._process_pool.shutdown(wait=wait)

    def __enter__(self) -> "MatchWorker":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown(wait=True)


class Debouncer:
    """Coalesce bursts of calls; only the last call in a window runs."""

    def __init__(self, window_seconds: float) -> None:
        self._window = max(0.0, float(window_seconds))
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: tuple[Callable[..., Any], tuple[Any, ...], dict[str, Any]] | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "Debouncer":
        runtime_cfg = dict(config.get("runtime", {}))
        return cls(float(runtime_cfg.get("debounce_ms", 200)) / 1000.0)

    def _fire(self) -> None:
        with self._lock:
            pending = self._pending
            self._pending = None
            self._timer = None
        if pending is not None:
            fn, args, kwargs = pending
            fn(*args, **kwargs)

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (fn, args, kwargs)
            self._timer = threading.Timer(self._window, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
        self._fire()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None
