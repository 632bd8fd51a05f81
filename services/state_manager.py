"""
state_manager.py - Session State Management

Manages in-memory dialogue state keyed by session id:
- One store for user dialogues, one for admin dialogues
- Idle-timeout eviction of abandoned dialogues
- Capacity bound (least recently touched entries evicted first)
- Per-session locks so one session's events are processed in order

NOTE: State is in-memory only and is lost on restart.
"""

import threading
import time
import logging
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from config.constants import Timeouts, Limits

logger = logging.getLogger(__name__)


class SessionStore:
    """Bounded map of session id -> dialogue state with idle expiry."""

    def __init__(self, name: str = "sessions",
                 ttl_seconds: float = Timeouts.SESSION_IDLE,
                 max_entries: int = Limits.SESSION_MAX_ENTRIES,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        # {session_id: (last_touched, state)}, oldest touch first
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._lock = threading.Lock()
        # {session_id: [lock, holders]}
        self._key_locks: Dict[str, list] = {}

    # ---------------- state ----------------

    def get(self, session_id: str) -> Optional[Any]:
        """Get state for a session, refreshing its idle timer."""
        key = str(session_id)
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries[key] = (now, entry[1])
            self._entries.move_to_end(key)
            return entry[1]

    def set(self, session_id: str, state: Any) -> None:
        """Set (replace) state for a session."""
        key = str(session_id)
        now = self._clock()
        with self._lock:
            self._entries[key] = (now, state)
            self._entries.move_to_end(key)
            self._purge_expired(now)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.warning("%s full, evicted session %s", self.name, evicted)

    def pop(self, session_id: str) -> Optional[Any]:
        """Remove and return state for a session."""
        with self._lock:
            entry = self._entries.pop(str(session_id), None)
        return entry[1] if entry else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired(self._clock())

    def _purge_expired(self, now: float) -> int:
        removed = 0
        while self._entries:
            key, (touched, _) = next(iter(self._entries.items()))
            if now - touched <= self.ttl_seconds:
                break
            self._entries.popitem(last=False)
            removed += 1
        if removed:
            logger.info("%s expired %d idle session(s)", self.name, removed)
        return removed

    def __contains__(self, session_id: str) -> bool:
        return self.get(session_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ---------------- per-session locking ----------------

    @contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        """Serialize processing for one session; other sessions are not blocked."""
        key = str(session_id)
        with self._lock:
            holder = self._key_locks.get(key)
            if holder is None:
                holder = [threading.RLock(), 0]
                self._key_locks[key] = holder
            holder[1] += 1

        holder[0].acquire()
        try:
            yield
        finally:
            holder[0].release()
            with self._lock:
                holder[1] -= 1
                if holder[1] == 0:
                    self._key_locks.pop(key, None)

    def get_stats(self) -> Dict[str, Any]:
        """Statistics about current state (for debugging)."""
        with self._lock:
            return {
                'name': self.name,
                'sessions': len(self._entries),
                'locked_sessions': len(self._key_locks),
            }
