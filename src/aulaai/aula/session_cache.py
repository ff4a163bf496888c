"""
Process-wide cache of Aula login sessions, keyed by account.

Concurrent agent sessions share one cache.  A valid entry is returned without taking any lock; a
missing or expired entry is refreshed under a per-key lock, so two sessions that find the same
account expired at the same time trigger a single login.
"""

import logging
import threading
import time
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
)

logger = logging.getLogger(__name__)


@dataclass
class AulaSession:
    """Authenticated portal session plus the profile data loaded right after login."""

    cookies: Dict[str, str]
    profiles: List[Dict[str, Any]] = field(default_factory=list)
    child_ids: Dict[str, Any] = field(default_factory=dict)
    created_at: float = 0.0


class SessionCache:
    """TTL cache with per-key refresh serialisation."""

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, AulaSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _is_valid(self, entry: AulaSession | None) -> bool:
        return entry is not None and self._clock() - entry.created_at < self.ttl

    def get(self, key: str) -> AulaSession | None:
        """Return the cached session for *key* if it has not expired."""
        entry = self._entries.get(key)
        return entry if self._is_valid(entry) else None

    def get_or_refresh(self, key: str, refresh: Callable[[], AulaSession]) -> AulaSession:
        """
        Return a valid session for *key*, calling *refresh* at most once per expiry.

        Exceptions from *refresh* propagate and leave the cache untouched.
        """
        entry = self.get(key)
        if entry is not None:
            return entry

        with self._lock_for(key):
            # Another thread may have refreshed while we waited
            entry = self.get(key)
            if entry is not None:
                return entry
            logger.info("Refreshing Aula session for '%s'", key)
            entry = refresh()
            entry.created_at = self._clock()
            self._entries[key] = entry
            return entry

    def invalidate(self, key: str, stale: AulaSession | None = None) -> None:
        """
        Drop the entry for *key*.

        When *stale* is given, the entry is only dropped if it is still that session, so a
        session refreshed by another thread in the meantime survives.
        """
        with self._lock_for(key):
            current = self._entries.get(key)
            if current is not None and (stale is None or current is stale):
                del self._entries[key]
