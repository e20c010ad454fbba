"""In-memory and no-op stores."""

from __future__ import annotations

import threading
import time
from typing import Any

from authsession.storage.base import Store


class MemoryStore(Store):
    """Process-local store with optional expiry.

    ``pop`` runs under the store lock, so two callers racing on the same key
    can never both receive the value.
    """

    def __init__(self, ttl: float | None = None) -> None:
        """Initialize the store.

        Args:
            ttl: Lifetime of each entry in seconds. None keeps entries forever.
        """
        self.ttl = ttl
        self._data: dict[str, tuple[float | None, Any]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> tuple[bool, Any]:
        entry = self._data.get(key)
        if entry is None:
            return False, None
        expires_at, value = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return False, None
        return True, value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            found, value = self._live(key)
            return value if found else default

    def set(self, key: str, value: Any) -> None:
        expires_at = time.monotonic() + self.ttl if self.ttl is not None else None
        with self._lock:
            self._data[key] = (expires_at, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def pop(self, key: str, default: Any = None) -> Any:
        with self._lock:
            found, value = self._live(key)
            self._data.pop(key, None)
            return value if found else default

    def keys(self) -> list[str]:
        """Return the keys currently held, skipping expired entries.

        Not part of the ``Store`` interface; used to inspect the store in tests.
        """
        with self._lock:
            return [k for k in list(self._data) if self._live(k)[0]]


class EmptyStore(Store):
    """Store that persists nothing."""

    def get(self, key: str, default: Any = None) -> Any:
        return default

    def set(self, key: str, value: Any) -> None:
        pass

    def delete(self, key: str) -> None:
        pass
