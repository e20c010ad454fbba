"""Storage backends for session and transaction data."""

from __future__ import annotations

from authsession.core.errors import ConfigurationError
from authsession.storage.base import Store, StoreBackend
from authsession.storage.flask_stores import CookieStore, SessionStore
from authsession.storage.memory import EmptyStore, MemoryStore


def build_store(backend: StoreBackend | str, **kwargs: object) -> Store:
    """Create the store selected in configuration.

    Args:
        backend: Store backend name.
        **kwargs: Passed to the store constructor.

    Returns:
        Store instance.

    Raises:
        ConfigurationError: If the backend is unknown.
    """
    try:
        backend = StoreBackend(backend)
    except ValueError:
        raise ConfigurationError(f"Unknown store backend: {backend}") from None

    if backend == StoreBackend.SESSION:
        return SessionStore(**kwargs)  # type: ignore[arg-type]
    if backend == StoreBackend.COOKIE:
        return CookieStore(**kwargs)  # type: ignore[arg-type]
    if backend == StoreBackend.MEMORY:
        return MemoryStore(**kwargs)  # type: ignore[arg-type]
    return EmptyStore()


__all__ = [
    "CookieStore",
    "EmptyStore",
    "MemoryStore",
    "SessionStore",
    "Store",
    "StoreBackend",
    "build_store",
]
