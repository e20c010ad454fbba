"""CSRF state handlers.

A state handler issues the opaque ``state`` value sent with the authorize
request and validates the value echoed back on the callback. Every
expected value is single-use: validation clears it whatever the outcome.
"""

from __future__ import annotations

import hmac
import secrets
from abc import ABC, abstractmethod
from enum import StrEnum

from authsession.core.errors import ConfigurationError
from authsession.storage.base import Store

STATE_KEY = "webauth_state"


class StateHandlerKind(StrEnum):
    """Available state handler implementations."""

    SESSION = "session"
    NONE = "none"


class StateHandler(ABC):
    """Issues and validates state values."""

    @abstractmethod
    def issue(self) -> str:
        """Generate a new state value and record it as the expected one."""

    @abstractmethod
    def store(self, state: str) -> None:
        """Record an externally generated state value as the expected one."""

    @abstractmethod
    def validate(self, state: str | None) -> bool:
        """Check state against the expected value and clear the expected value."""


class SessionStateHandler(StateHandler):
    """State handler backed by a session-scoped store."""

    def __init__(self, store: Store, key: str = STATE_KEY) -> None:
        self._store = store
        self._key = key

    def issue(self) -> str:
        state = secrets.token_hex(16)
        self.store(state)
        return state

    def store(self, state: str) -> None:
        self._store.set(self._key, state)

    def validate(self, state: str | None) -> bool:
        expected = self._store.pop(self._key)
        if not state or not expected:
            return False
        return hmac.compare_digest(str(expected), str(state))


class DummyStateHandler(StateHandler):
    """State handler that accepts any state.

    For applications that handle CSRF protection themselves.
    """

    def issue(self) -> str:
        return secrets.token_hex(16)

    def store(self, state: str) -> None:
        pass

    def validate(self, state: str | None) -> bool:
        return True


def build_state_handler(kind: StateHandlerKind | str, store: Store | None = None) -> StateHandler:
    """Create the state handler selected in configuration.

    Args:
        kind: Handler kind.
        store: Store for the session handler. Required for ``session``.

    Returns:
        StateHandler instance.

    Raises:
        ConfigurationError: If the kind is unknown or the store is missing.
    """
    try:
        kind = StateHandlerKind(kind)
    except ValueError:
        raise ConfigurationError(f"Unknown state handler: {kind}") from None

    if kind == StateHandlerKind.NONE:
        return DummyStateHandler()
    if store is None:
        raise ConfigurationError("Session state handler requires a store")
    return SessionStateHandler(store)
