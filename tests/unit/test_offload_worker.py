from __future__ import annotations

import threading
import time
from typing import Any

import pytest

from docmap.config import default_config
from docmap.offload.job_manager import JobState
from docmap.offload.worker import Debouncer, MatchWorker, run_auto_match_payload
from docmap.query.auto_match import AutoMatchCancelled
from docmap.schema.models import Suggestion

PATHS = [
    "contracts/master-services-agreement.pdf",
    "statements/witness-statement-john-smith.pdf",
    "billing/invoice.pdf",
]
REFERENCES = ["Master Services Agreement", "Witness Statement of John Smith", "Zebra quokka"]


class RecordingCallback:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def on_start(self, job_id: str, total_references: int) -> None:
        self.calls.append(("start", total_references))

    def on_progress(self, job_id: str, completed: int, total: int, current_reference: str) -> None:
        self.calls.append(("progress", completed))

    def on_complete(self, job_id: str, summary: dict[str, Any]) -> None:
        self.calls.append(("complete", summary))

    def on_error(self, job_id: str, error: str) -> None:
        self.calls.append(("error", error))


def _worker(mode: str, max_workers: int = 2, learning: bool = False) -> MatchWorker:
    cfg = default_config()
    cfg["runtime"]["executor"] = mode
    cfg["runtime"]["max_workers"] = max_workers
    cfg["learning"]["enabled"] = learning
    worker = MatchWorker(cfg)
    worker.load_paths(PATHS)
    return worker


def test_inline_search_matches_index_search() -> None:
    with _worker("inline") as worker:
        assert worker.mode == "inline"
        reply = worker.submit_search("invoice").result()
        assert reply.results == worker.search("invoice")
        assert reply.results[0].path == "billing/invoice.pdf"
        assert not reply.stale


def test_newer_request_marks_older_stale() -> None:
    with _worker("inline") as worker:
        seen: list[int] = []
        first = worker.submit_search("invoice", callback=lambda reply: seen.append(reply.request_id)).result()
        second = worker.submit_search("contracts/").result()
        assert worker.is_stale(first.request_id)
        assert not worker.is_stale(second.request_id)
        assert seen == [first.request_id]


def test_load_paths_swaps_index() -> None:
    with _worker("thread") as worker:
        old = worker.index
        fresh = worker.load_paths(["notes/site-visit.docx"])
        assert worker.index is fresh
        assert old is not fresh
        assert worker.search("site visit")[0].path == "notes/site-visit.docx"
        assert worker.search("invoice") == []


def test_thread_auto_match_job_completes() -> None:
    callback = RecordingCallback()
    with _worker("thread") as worker:
        job, future = worker.submit_auto_match(REFERENCES, callback=callback)
        result = future.result(timeout=30)
    assert job.state == JobState.COMPLETED
    assert [item.suggested_path for item in result.suggestions] == [PATHS[0], PATHS[1], ""]
    assert callback.calls[0] == ("start", 3)
    assert callback.calls[-1][0] == "complete"
    assert callback.calls[-1][1]["no_match"] == 1
    assert [event["event"] for event in job.get_events()] == ["started", "completed"]


def test_process_auto_match_matches_inline() -> None:
    with _worker("inline") as inline_worker:
        expected = inline_worker.submit_auto_match(REFERENCES)[1].result()
    with _worker("process") as worker:
        job, future = worker.submit_auto_match(REFERENCES)
        result = future.result(timeout=60)
    assert [item.suggested_path for item in result.suggestions] == [
        item.suggested_path for item in expected.suggestions
    ]
    assert job.state == JobState.COMPLETED
    assert job.completed_references == 3
    assert job.to_status()["progress"] == 100.0


def test_submit_after_shutdown_runs_inline() -> None:
    worker = _worker("thread")
    worker.shutdown()
    reply = worker.submit_search("invoice").result()
    assert reply.results[0].path == "billing/invoice.pdf"


def test_bad_reference_collection_raises() -> None:
    with _worker("inline") as worker:
        with pytest.raises(TypeError):
            worker.submit_auto_match("Invoice")


def test_payload_entry_point_uses_plain_values() -> None:
    payload = {
        "references": [{"id": "r1", "description": "Invoice"}],
        "paths": PATHS,
        "excluded": [],
        "config": default_config(),
    }
    result = run_auto_match_payload(payload)
    assert result["suggestions"][0]["suggested_path"] == "billing/invoice.pdf"
    assert result["suggestions"][0]["reference"]["id"] == "r1"


def test_debouncer_runs_only_last_call() -> None:
    calls: list[int] = []
    debouncer = Debouncer(window_seconds=5)
    for value in (1, 2, 3):
        debouncer.call(calls.append, value)
    debouncer.flush()
    assert calls == [3]


def test_debouncer_cancel_drops_pending_call() -> None:
    calls: list[int] = []
    debouncer = Debouncer(window_seconds=0.02)
    debouncer.call(calls.append, 1)
    debouncer.cancel()
    time.sleep(0.1)
    assert calls == []


def test_debouncer_fires_after_window() -> None:
    calls: list[int] = []
    debouncer = Debouncer.from_config({"runtime": {"debounce_ms": 10}})
    debouncer.call(calls.append, 7)
    deadline = time.time() + 2
    while not calls and time.time() < deadline:
        time.sleep(0.01)
    assert calls == [7]


class BlockingCallback(RecordingCallback):
    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def on_start(self, job_id: str, total_references: int) -> None:
        super().on_start(job_id, total_references)
        self.started.set()
        self.release.wait(timeout=10)


def test_cancelled_pending_job_never_runs() -> None:
    blocker = BlockingCallback()
    queued = RecordingCallback()
    with _worker("thread", max_workers=1) as worker:
        first_job, first = worker.submit_auto_match(REFERENCES, callback=blocker)
        assert blocker.started.wait(timeout=10)
        second_job, second = worker.submit_auto_match(REFERENCES, callback=queued)
        assert worker.jobs.cancel_job(second_job.job_id)
        blocker.release.set()
        first.result(timeout=30)
        with pytest.raises(AutoMatchCancelled):
            second.result(timeout=30)
    assert first_job.state == JobState.COMPLETED
    assert second_job.state == JobState.CANCELLED
    assert queued.calls == []
    assert [event["event"] for event in second_job.get_events()] == ["cancelled"]


def test_cancel_while_running_stops_the_run() -> None:
    class CancelOnFirstProgress(RecordingCallback):
        def on_progress(self, job_id: str, completed: int, total: int, current_reference: str) -> None:
            super().on_progress(job_id, completed, total, current_reference)
            worker.jobs.cancel_job(job_id)

    callback = CancelOnFirstProgress()
    with _worker("inline") as worker:
        job, future = worker.submit_auto_match(REFERENCES, callback=callback)
        with pytest.raises(AutoMatchCancelled):
            future.result(timeout=10)
    assert job.state == JobState.CANCELLED
    assert job.completed_references == 1
    assert [name for name, _ in callback.calls] == ["start", "progress"]


def test_worker_accept_teaches_learning_engine() -> None:
    with _worker("inline", learning=True) as worker:
        assert worker.learning is not None
        result = worker.submit_auto_match(REFERENCES[:1])[1].result()
        selected = [item.with_flags(is_selected=True) for item in result.suggestions]
        accepted = worker.accept(selected)
        assert list(accepted.values()) == [PATHS[0]]
        assert worker.learning.statistics()["statistics"]["successful_matches"] == 1
    with _worker("inline") as plain:
        assert plain.learning is None
        assert plain.accept([Suggestion(reference=result.suggestions[0].reference)]) == {}
