from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


class JobState:
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    _VALUES = [PENDING, RUNNING, COMPLETED, FAILED, CANCELLED]
    _TERMINAL = (COMPLETED, FAILED, CANCELLED)

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls._VALUES


@dataclass
class MatchJob:
    job_id: str
    state: str = JobState.PENDING
    progress: float = 0.0
    total_references: int = 0
    completed_references: int = 0
    current_reference: str = ""
    elapsed_sec: float = 0.0
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str | None = None
    result: dict[str, Any] | None = None
    _events: deque[dict] = field(default_factory=lambda: deque(maxlen=500), repr=False)
    _event_seq: int = field(default=0, repr=False)
    _start_perf_counter: float | None = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def to_status(self) -> dict[str, Any]:
        with self._lock:
            if self.state == JobState.RUNNING and self._start_perf_counter is not None:
                self.elapsed_sec = max(0.0, time.perf_counter() - self._start_perf_counter)
            return {
                "job_id": self.job_id,
                "state": self.state,
                "progress": round(self.progress, 2),
                "elapsed_sec": round(self.elapsed_sec, 1),
                "total_references": self.total_references,
                "completed_references": self.completed_references,
                "current_reference": self.current_reference,
                "error": self.error,
            }

    def add_event(self, event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._event_seq += 1
            event = {
                "seq": self._event_seq,
                "ts": datetime.now(timezone.utc).isoformat(),
                "event": event_type,
                "job_id": self.job_id,
                **payload,
            }
            self._events.append(event)
            return event

    def get_events(self, since_seq: int = 0) -> list[dict[str, Any]]:
        with self._lock:
            if since_seq <= 0:
                return list(self._events)
            return [e for e in self._events if e.get("seq", 0) > since_seq]

    def is_terminal(self) -> bool:
        with self._lock:
            return self.state in JobState._TERMINAL

    def update_progress(self, completed: int, total: int, current_reference: str = "") -> None:
        with self._lock:
            self.completed_references = completed
            self.total_references = total
            self.current_reference = current_reference
            if total > 0:
                self.progress = (completed / total) * 100.0

    def mark_running(self, total_references: int) -> bool:
        """Move to RUNNING; returns False and changes nothing once the job is terminal."""
        with self._lock:
            if self.state in JobState._TERMINAL:
                return False
            self.state = JobState.RUNNING
            self.total_references = total_references
            if self.start_time is None:
                self.start_time = datetime.now(timezone.utc)
                self._start_perf_counter = time.perf_counter()
            return True

    def _finish(self, state: str) -> None:
        self.state = state
        self.end_time = datetime.now(timezone.utc)
        if self.start_time:
            self.elapsed_sec = (self.end_time - self.start_time).total_seconds()

    def try_mark_completed(self, result: dict[str, Any]) -> bool:
        with self._lock:
            if self.state == JobState.CANCELLED:
                return False
            self._finish(JobState.COMPLETED)
            self.result = result
            self.progress = 100.0
            return True

    def mark_failed(self, error: str) -> None:
        with self._lock:
            self._finish(JobState.FAILED)
            self.error = error

    def mark_cancelled(self) -> None:
        with self._lock:
            if self.state not in JobState._TERMINAL:
                self._finish(JobState.CANCELLED)


class JobManager:
    MAX_JOBS = 100

    def __init__(self) -> None:
        self._jobs: dict[str, MatchJob] = {}
        self._lock = threading.Lock()

    def create_job(self, prefix: str = "automatch") -> MatchJob:
        safe_prefix = str(prefix or "automatch").strip().lower() or "automatch"
        job = MatchJob(job_id=f"{safe_prefix}_{uuid4().hex[:12]}")
        with self._lock:
            if len(self._jobs) >= self.MAX_JOBS:
                oldest_key = next(iter(self._jobs))
                del self._jobs[oldest_key]
            self._jobs[job.job_id] = job
        return job

    def get_job(self, job_id: str) -> MatchJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    def get_all_jobs(self) -> list[MatchJob]:
        with self._lock:
            return list(self._jobs.values())

    def cancel_job(self, job_id: str) -> bool:
        job = self.get_job(job_id)
        if job is None or job.is_terminal():
            return False
        job.mark_cancelled()
        return True

    def cleanup_completed(self, max_age_seconds: float = 3600) -> int:
        now = datetime.now(timezone.utc)
        with self._lock:
            stale = [
                job_id
                for job_id, job in self._jobs.items()
                if job.state in JobState._TERMINAL
                and job.end_time is not None
                and (now - job.end_time).total_seconds() > max_age_seconds
            ]
            for job_id in stale:
                del self._jobs[job_id]
        return len(stale)
