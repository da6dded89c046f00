"""
In-memory cache of per-request structured logs.

Entries are kept in least-recently-used order, bounded by a maximum entry count
and expired a fixed time after they were created. Expiry is applied lazily on
access and by :meth:`LogCache.evict_expired`, which the web application calls
from a periodic sweep task.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from newsletter_agent.models.log import LogLine

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Log lines of one request plus expiry bookkeeping."""

    lines: List[LogLine] = field(default_factory=list)
    expires_at: float = 0.0


class LogCache:
    """Process-wide, thread-safe LRU cache of request logs with a TTL."""

    def __init__(
        self,
        max_entries: int = 200,
        ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            max_entries: Maximum number of request logs kept
            ttl_seconds: Lifetime of an entry after its (re)creation
            clock: Monotonic time source, injectable for tests
        """
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self.evictions = 0
        self.expirations = 0

    def insert(self, request_id: str) -> CacheEntry:
        """Return the entry for ``request_id``, creating it if needed.

        Creating an entry starts its TTL. Either way the entry becomes the most
        recently used one, and the least recently used entries are evicted
        while the cache is over capacity.
        """
        with self._lock:
            now = self._clock()
            entry = self._live_entry(request_id, now)
            if entry is None:
                entry = CacheEntry(expires_at=now + self.ttl_seconds)
                self._entries[request_id] = entry
            self._entries.move_to_end(request_id)
            self._evict_over_capacity()
            return entry

    def touch(self, request_id: str) -> bool:
        """Mark an entry as most recently used. Returns False if it is gone."""
        with self._lock:
            entry = self._live_entry(request_id, self._clock())
            if entry is None:
                return False
            self._entries.move_to_end(request_id)
            return True

    def get(self, request_id: str) -> Optional[List[LogLine]]:
        """Return a copy of a request's log lines, promoting the entry."""
        with self._lock:
            entry = self._live_entry(request_id, self._clock())
            if entry is None:
                return None
            self._entries.move_to_end(request_id)
            return list(entry.lines)

    def append(self, request_id: str, entry: CacheEntry, line: LogLine) -> None:
        """Append a line to ``entry`` and promote it if it is still cached."""
        with self._lock:
            entry.lines.append(line)
            if self._entries.get(request_id) is entry:
                self._entries.move_to_end(request_id)

    def remove(self, request_id: str) -> bool:
        with self._lock:
            return self._entries.pop(request_id, None) is not None

    def evict_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for key in expired:
                del self._entries[key]
            self.expirations += len(expired)
        if expired:
            logger.debug(f"Expired {len(expired)} request logs")
        return len(expired)

    def keys(self) -> List[str]:
        """Request ids from least to most recently used."""
        with self._lock:
            return list(self._entries.keys())

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics for monitoring."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "ttl_seconds": self.ttl_seconds,
                "evictions": self.evictions,
                "expirations": self.expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            if not isinstance(request_id, str):
                return False
            return self._live_entry(request_id, self._clock()) is not None

    def _live_entry(self, request_id: str, now: float) -> Optional[CacheEntry]:
        entry = self._entries.get(request_id)
        if entry is not None and entry.expires_at <= now:
            del self._entries[request_id]
            self.expirations += 1
            return None
        return entry

    def _evict_over_capacity(self) -> None:
        while len(self._entries) > self.max_entries:
            oldest, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug(f"Evicted request log {oldest} (cache full)")
