# core/cache.py

"""
In-memory TTL store for server-held impersonation sessions.

One entry per staff principal. Writes replace, never append, so a staff
admin has at most one live session at a time. Entries expire together with
the session token they back.

Process-local: running several workers requires a shared store (Redis or a
database table) behind the same interface.
"""

from typing import Optional, Any
from datetime import datetime, timedelta, timezone
from threading import Lock


class CacheEntry:
    """Represents a stored value with expiration time."""

    def __init__(self, value: Any, ttl_seconds: int):
        self.value = value
        self.expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)

    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at


class SimpleCache:
    """
    Thread-safe in-memory map with TTL support.
    """

    def __init__(self):
        self._cache: dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value, or None if missing or expired.
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired():
                del self._cache[key]
                return None

            return entry.value

    def replace(self, key: str, value: Any, ttl_seconds: int) -> Optional[Any]:
        """
        Store `value` under `key` and return the live value it replaced.
        Single locked write: readers see either the old or the new value.
        """
        with self._lock:
            previous = self._cache.get(key)
            self._cache[key] = CacheEntry(value, ttl_seconds)

        if previous is not None and not previous.is_expired():
            return previous.value
        return None

    def delete(self, key: str) -> Optional[Any]:
        """Remove a key and return the live value it held."""
        with self._lock:
            entry = self._cache.pop(key, None)

        if entry is None or entry.is_expired():
            return None
        return entry.value

    def clear(self):
        with self._lock:
            self._cache.clear()


    def size(self) -> int:
        with self._lock:
            return len(self._cache)


# Global session registry
_sessions = SimpleCache()


def get_session_registry() -> SimpleCache:
    """Get the global impersonation session registry."""
    return _sessions


def session_registry_clear():
    """Clear all sessions (tests, process shutdown)."""
    _sessions.clear()
