from .callbacks import MatchProgressCallback, NoOpCallback
from .job_manager import JobManager, JobState, MatchJob
from .worker import Debouncer, MatchWorker, SearchReply, run_auto_match_payload

__all__ = [
    "Debouncer",
    "JobManager",
    "JobState",
    "MatchJob",
    "MatchProgressCallback",
    "MatchWorker",
    "NoOpCallback",
    "SearchReply",
    "run_auto_match_payload",
]
