"""
Client-side key/value storage for session pointers.

The session cache never touches cookies or files directly; it goes through a
ClientStorage so the same restore logic runs against the signed browser
session (via the HTTP layer), an in-memory dict in tests, or any secure store
a non-browser client provides.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple


class ClientStorage(ABC):
    """Abstract base class for client session storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get a stored value, or None when absent or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store a value, optionally expiring after ttl_seconds."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a value. Removing a missing key is not an error."""
        pass


class MemoryClientStorage(ClientStorage):
    """In-process storage with per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._items: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._items[key]
            return None
        return value

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._items[key] = (value, expires_at)

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class SessionClientStorage(ClientStorage):
    """
    Storage inside a Starlette `request.session`.

    SessionMiddleware signs the whole session cookie, so a client can read
    neither tampered nor hand-written values back as pointers. Each entry keeps
    its own expiry next to the value.
    """

    def __init__(
        self,
        session: MutableMapping[str, Any],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session
        self._clock = clock

    def get(self, key: str) -> Optional[str]:
        entry = self._session.get(key)
        if not isinstance(entry, dict):
            return None
        expires_at = entry.get("expiresAt")
        if expires_at is not None and expires_at <= self._clock():
            self._session.pop(key, None)
            return None
        value = entry.get("value")
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._session[key] = {"value": value, "expiresAt": expires_at}

    def remove(self, key: str) -> None:
        self._session.pop(key, None)
