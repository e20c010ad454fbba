"""Cache handlers for provider metadata such as JSON Web Key Sets."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

from authsession.core.errors import ConfigurationError

# Default JWKS cache lifetime
DEFAULT_CACHE_TTL = 600


class CacheBackend(StrEnum):
    """Available cache implementations."""

    MEMORY = "memory"
    NONE = "none"


class CacheHandler(ABC):
    """Simple cache interface."""

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the cached value or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Cache value under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Evict key."""


class NoCacheHandler(CacheHandler):
    """Cache that never stores anything."""

    def get(self, key: str) -> Any:
        return None

    def set(self, key: str, value: Any) -> None:
        pass

    def delete(self, key: str) -> None:
        pass


class MemoryCacheHandler(CacheHandler):
    """Process-local cache with a fixed time-to-live."""

    def __init__(self, ttl: float = DEFAULT_CACHE_TTL) -> None:
        """Initialize the cache.

        Args:
            ttl: Lifetime of an entry in seconds.
        """
        self.ttl = ttl
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic() + self.ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


# Shared across requests so key sets survive per-request sessions
_shared_memory_cache: MemoryCacheHandler | None = None


def build_cache_handler(backend: CacheBackend | str) -> CacheHandler:
    """Create the cache handler selected in configuration.

    The memory backend returns one process-wide instance.
    """
    global _shared_memory_cache
    try:
        backend = CacheBackend(backend)
    except ValueError:
        raise ConfigurationError(f"Unknown cache handler: {backend}") from None

    if backend == CacheBackend.NONE:
        return NoCacheHandler()
    if _shared_memory_cache is None:
        _shared_memory_cache = MemoryCacheHandler()
    return _shared_memory_cache
