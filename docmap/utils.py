"""Shared utility functions used across the docmap package.

Keeps the small helpers (timestamps, path normalization, line-file loading,
logging setup) in one place so every module formats them the same way.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Path normalization helpers
# ---------------------------------------------------------------------------

def normalize_path_str(path: str) -> str:
    """Normalize a virtual path string: backslash to slash, strip, drop './' prefix."""
    normalized = str(path or "").replace("\\", "/").strip()
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def normalize_path_abs(path: Path) -> Path:
    """Resolve a Path to an absolute path safely (avoids Windows resolve quirks)."""
    return Path(os.path.abspath(str(path)))


def read_lines(path: Path) -> list[str]:
    """Return the non-blank lines of a UTF-8 text file, in file order."""
    text = Path(path).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------

_DOCMAP_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a namespaced logger under the ``docmap`` hierarchy.

    Usage::

        from docmap.utils import get_logger
        logger = get_logger(__name__)
        logger.info("index built")
    """
    logger = logging.getLogger(name if name.startswith("docmap") else f"docmap.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DOCMAP_LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(
            logging.DEBUG
            if os.environ.get("DOCMAP_DEBUG", "").lower() in {"1", "true", "yes"}
            else logging.WARNING
        )
    return logger
