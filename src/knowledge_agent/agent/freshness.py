"""Per-URL freshness cache with a fixed time-to-live."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from knowledge_agent.types import IntentKind, ParsedIntent

DEFAULT_TTL_MS = 300_000


def _now_ms() -> float:
    return time.time() * 1000.0


class FreshnessCache:
    """Tracks when each URL was last fetched successfully.

    Entries are never evicted; the key space is bounded by the distinct URLs
    actually fetched during the process lifetime. Writes simply overwrite, so a
    concurrent race costs at most one redundant fetch.
    """

    def __init__(
        self,
        ttl_ms: float = DEFAULT_TTL_MS,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock or _now_ms
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def is_stale(self, url: str) -> bool:
        with self._lock:
            fetched_at = self._entries.get(url)
        if fetched_at is None:
            return True
        return self._clock() - fetched_at > self.ttl_ms

    def mark_fetched(self, url: str, at_ms: float | None = None) -> None:
        timestamp = self._clock() if at_ms is None else at_ms
        with self._lock:
            self._entries[url] = timestamp

    def last_fetched(self, url: str) -> float | None:
        with self._lock:
            return self._entries.get(url)

    def should_fetch(self, intent: ParsedIntent) -> bool:
        """Only URL intents can require a fetch; true on the first stale URL."""
        if intent.kind is not IntentKind.URL or not intent.urls:
            return False
        return any(self.is_stale(url) for url in intent.urls)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
