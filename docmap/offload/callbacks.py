from __future__ import annotations

from typing import Any, Protocol

from ..utils import get_logger

logger = get_logger(__name__)


class MatchProgressCallback(Protocol):
    def on_start(self, job_id: str, total_references: int) -> None:
        """Auto-match job started."""

    def on_progress(self, job_id: str, completed: int, total: int, current_reference: str) -> None:
        """Periodic progress while references are being matched."""

    def on_complete(self, job_id: str, summary: dict[str, Any]) -> None:
        """Job finished; ``summary`` holds the confidence counts."""

    def on_error(self, job_id: str, error: str) -> None:
        """Job failed."""


class NoOpCallback(MatchProgressCallback):
    def on_start(self, job_id: str, total_references: int) -> None:
        pass

    def on_progress(self, job_id: str, completed: int, total: int, current_reference: str) -> None:
        pass

    def on_complete(self, job_id: str, summary: dict[str, Any]) -> None:
        pass

    def on_error(self, job_id: str, error: str) -> None:
        pass


def safe_callback_call(
    callback: MatchProgressCallback, method_name: str, *args: Any, **kwargs: Any
) -> None:
    method = getattr(callback, method_name, None)
    if method is None:
        return
    try:
        method(*args, **kwargs)
    except Exception as exc:
        logger.warning("callback %s failed: %s", method_name, exc)
