# xmlwatcher/watchdog/suppression.py

"""
Suppression of events caused by our own file writes

When a webhook response is written back into a watched file, the write shows
up as a new filesystem event. The overwrite step registers the path here
first, and the monitor consumes the entry when that event arrives.
"""
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class SuppressionEntry:
    """A path whose next event must be ignored, until `expires_at`"""
    path: Path
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SuppressionRegistry:
    """
    Thread-safe registry of self-written paths

    Entries are removed by a single consumption or once they expire,
    whichever comes first. All reads and writes go through one lock, so
    registration from worker threads and consumption from the event loop
    never lose or double-consume an entry.
    """

    def __init__(self, ttl: float = 2.0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize registry

        Args:
            ttl: Default lifetime of an entry in seconds
            clock: Monotonic time source, injectable for tests
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Path, SuppressionEntry] = {}
        self._lock = threading.Lock()

        self.stats = {
            'registered': 0,
            'consumed': 0,
            'expired': 0,
        }

    @staticmethod
    def _key(path: PathLike) -> Path:
        return Path(path)

    def register(self, path: PathLike, ttl: Optional[float] = None) -> SuppressionEntry:
        """
        Suppress the next event for `path`

        Registering a path that already has a live entry refreshes its expiry.
        """
        key = self._key(path)
        expires_at = self._clock() + (self.ttl if ttl is None else ttl)
        entry = SuppressionEntry(path=key, expires_at=expires_at)

        with self._lock:
            self._entries[key] = entry
            self.stats['registered'] += 1

        logger.debug(f"Suppressing next event for {key}")
        return entry

    def consume_if_present(self, path: PathLike) -> bool:
        """
        Atomically check for and remove a live entry

        Returns:
            True if a live entry existed for exactly this path
        """
        key = self._key(path)
        now = self._clock()

        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            if entry.is_expired(now):
                self.stats['expired'] += 1
                return False
            self.stats['consumed'] += 1

        return True

    def discard(self, path: PathLike) -> bool:
        """Drop an entry without counting it as consumed"""
        with self._lock:
            return self._entries.pop(self._key(path), None) is not None

    def is_suppressed(self, path: PathLike) -> bool:
        """Check for a live entry without consuming it"""
        key = self._key(path)
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def purge_expired(self) -> int:
        """Remove expired entries, returns how many were dropped"""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self.stats['expired'] += len(expired)

        if expired:
            logger.debug(f"Purged {len(expired)} expired suppression entries")
        return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: PathLike) -> bool:
        return self.is_suppressed(path)
