"""Session storage capability used for CSRF state tokens.

The flow only needs get/set/delete. Stores that can also pop a key
atomically should expose `pop`; the state validator prefers it.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable


@runtime_checkable
class SessionStore(Protocol):
    """Key-value storage shared between the redirect and the callback request."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemorySessionStore:
    """Thread-safe in-process session store.

    Suitable for tests and single-process deployments. Entries never expire.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def pop(self, key: str) -> str | None:
        """Atomically read and remove a key."""
        with self._lock:
            return self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
