"""
ResultCache: short-lived store of recommendation outcomes keyed by conversation id.

Entries expire by timestamp comparison. Expired entries are dropped lazily on
read and swept on every write. Jobs run in the server's worker threads, so
every operation takes the same lock.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from app.models.canvas_models import CacheEntry, RecommendationSet

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResultCache:

    DEFAULT_TTL_SECONDS = 300
    DEFAULT_MAX_ENTRIES = 1024

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], datetime] = utc_now,
                 max_entries: int = DEFAULT_MAX_ENTRIES):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._max_entries = max_entries
        self._entries: Dict[str, CacheEntry] = {}
        self._generations: Dict[str, int] = {}
        # Jobs begun per key that have not written yet
        self._in_flight: Dict[str, int] = {}
        self._lock = threading.Lock()

    # --- Core interface ---

    def put(self, key: str, entry: CacheEntry) -> bool:
        """
        Stores entry under key, replacing whatever was there.
        If the entry carries a generation older than the latest begin() for
        that key, the write is discarded and False is returned.
        """
        with self._lock:
            if entry.generation is not None:
                self._settle_locked(key)
            current = self._generations.get(key)
            if entry.generation is not None and current is not None and entry.generation < current:
                logger.info("Discarding stale result for %s (generation %s < %s)", key, entry.generation, current)
                return False
            self._entries[key] = entry
            self._purge_locked()
            return True

    def get(self, key: str) -> Optional[CacheEntry]:
        """Returns the live entry for key, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_live(self._clock()):
                del self._entries[key]
                return None
            return entry

    # --- Job coordination ---

    def begin(self, key: str) -> int:
        """
        Marks the start of a new job for key and returns its generation.
        Any previous result is dropped so polls report "still processing"
        until the new job writes.
        """
        with self._lock:
            generation = self._generations.get(key, 0) + 1
            self._generations[key] = generation
            self._in_flight[key] = self._in_flight.get(key, 0) + 1
            self._entries.pop(key, None)
            return generation

    def _settle_locked(self, key: str) -> None:
        remaining = self._in_flight.get(key, 0) - 1
        if remaining > 0:
            self._in_flight[key] = remaining
        else:
            self._in_flight.pop(key, None)

    def store_ready(self, key: str, recommendations: RecommendationSet,
                    generation: Optional[int] = None) -> bool:
        return self.put(key, self._make_entry("ready", generation, recommendations=recommendations))

    def store_failed(self, key: str, message: str, generation: Optional[int] = None) -> bool:
        return self.put(key, self._make_entry("failed", generation, error=message))

    def _make_entry(self, status: str, generation: Optional[int], **fields) -> CacheEntry:
        now = self._clock()
        return CacheEntry(
            status=status,
            created_at=now,
            expires_at=now + self.ttl,
            generation=generation,
            **fields,
        )

    # --- Hygiene ---

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_live(now)]
        for key in expired:
            del self._entries[key]

        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda k: self._entries[k].expires_at)[:overflow]
            for key in oldest:
                del self._entries[key]
            logger.warning("ResultCache over capacity, evicted %d entries", overflow)
            expired.extend(oldest)

        # A generation is forgotten only once no job for that key can still write
        surplus = len(self._generations) - self._max_entries
        if surplus > 0:
            idle = [k for k in self._generations if k not in self._entries and k not in self._in_flight]
            for key in idle[:surplus]:
                del self._generations[key]

        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
