"""Key/value store contract shared by the durable and transient stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any


class StoreBackend(StrEnum):
    """Available store implementations."""

    SESSION = "session"
    COOKIE = "cookie"
    MEMORY = "memory"
    NONE = "none"


class Store(ABC):
    """Minimal key/value storage used for session and transaction data."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default if absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""

    def pop(self, key: str, default: Any = None) -> Any:
        """Read and delete a value in one step.

        The base implementation is a plain get followed by delete. Stores that
        can consume a value atomically override this.
        """
        value = self.get(key, default)
        self.delete(key)
        return value
