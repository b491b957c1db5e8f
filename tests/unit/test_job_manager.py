from __future__ import annotations

from docmap.offload.job_manager import JobManager, JobState


def test_job_lifecycle_and_events() -> None:
    manager = JobManager()
    job = manager.create_job()
    assert job.job_id.startswith("automatch_")
    assert job.state == JobState.PENDING
    assert manager.get_job(job.job_id) is job

    job.mark_running(4)
    job.add_event("started", {"total_references": 4})
    job.update_progress(2, 4, "Invoice")
    status = job.to_status()
    assert status["state"] == JobState.RUNNING
    assert status["progress"] == 50.0
    assert status["current_reference"] == "Invoice"

    assert job.try_mark_completed({"high_confidence": 1})
    job.add_event("completed", {"high_confidence": 1})
    assert job.is_terminal()
    assert job.progress == 100.0
    events = job.get_events()
    assert [event["event"] for event in events] == ["started", "completed"]
    assert [event["seq"] for event in job.get_events(since_seq=1)] == [2]


def test_cancelled_job_cannot_complete() -> None:
    manager = JobManager()
    job = manager.create_job()
    job.mark_running(1)
    assert manager.cancel_job(job.job_id)
    assert job.state == JobState.CANCELLED
    assert not job.try_mark_completed({})
    assert not manager.cancel_job(job.job_id)
    assert not manager.cancel_job("missing")


def test_failed_job_keeps_error() -> None:
    job = JobManager().create_job()
    job.mark_running(1)
    job.mark_failed("index missing")
    assert job.to_status()["error"] == "index missing"
    assert job.state == JobState.FAILED


def test_oldest_job_evicted_at_capacity() -> None:
    manager = JobManager()
    manager.MAX_JOBS = 2
    first = manager.create_job()
    manager.create_job()
    manager.create_job()
    assert manager.get_job(first.job_id) is None
    assert len(manager.get_all_jobs()) == 2


def test_cleanup_removes_finished_jobs() -> None:
    manager = JobManager()
    done = manager.create_job()
    done.mark_running(1)
    done.try_mark_completed({})
    running = manager.create_job()
    running.mark_running(1)
    assert manager.cleanup_completed(max_age_seconds=-1) == 1
    assert manager.get_job(done.job_id) is None
    assert manager.get_job(running.job_id) is running
    assert JobState.is_valid("running")
    assert not JobState.is_valid("paused")


def test_cancelled_job_cannot_start_running() -> None:
    manager = JobManager()
    job = manager.create_job()
    assert manager.cancel_job(job.job_id)
    assert not job.mark_running(3)
    assert job.state == JobState.CANCELLED
    assert job.total_references == 0
