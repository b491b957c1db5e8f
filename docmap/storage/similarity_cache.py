from __future__ import annotations

import threading
from collections import OrderedDict

DEFAULT_MAX_ENTRIES = 50000


class SimilarityCache:
    """Bounded LRU memo for pairwise similarity scores.

    Owned by one ``SearchIndex`` (or one auto-match run) so its lifetime ends
    with the owner. Keys are the two raw strings verbatim.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._max_entries = max(1, int(max_entries))
        self._entries: OrderedDict[tuple[str, str], float] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, left: str, right: str) -> float | None:
        key = (left, right)
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def put(self, left: str, right: str, value: float) -> None:
        key = (left, right)
        with self._lock:
            self._entries[key] = float(value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self._max_entries,
                "hits": self.hits,
                "misses": self.misses,
            }
