"""Persistence policy for session identity values."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authsession.core.config import SessionConfig


class TokenKind(StrEnum):
    """Session values that may be written to the durable store.

    The value doubles as the store key.
    """

    USER = "user"
    ACCESS_TOKEN = "access_token"
    ID_TOKEN = "id_token"
    REFRESH_TOKEN = "refresh_token"


ALL_KINDS: frozenset[TokenKind] = frozenset(TokenKind)


@dataclass(frozen=True)
class PersistencePolicy:
    """The set of kinds written to the durable store."""

    enabled: frozenset[TokenKind] = frozenset({TokenKind.USER})

    @classmethod
    def from_flags(
        cls,
        user: bool = True,
        access_token: bool = False,
        id_token: bool = False,
        refresh_token: bool = False,
    ) -> PersistencePolicy:
        flags = {
            TokenKind.USER: user,
            TokenKind.ACCESS_TOKEN: access_token,
            TokenKind.ID_TOKEN: id_token,
            TokenKind.REFRESH_TOKEN: refresh_token,
        }
        return cls(frozenset(kind for kind, on in flags.items() if on))

    @classmethod
    def from_config(cls, config: SessionConfig) -> PersistencePolicy:
        return cls.from_flags(
            user=config.persist_user,
            access_token=config.persist_access_token,
            id_token=config.persist_id_token,
            refresh_token=config.persist_refresh_token,
        )

    def is_enabled(self, kind: TokenKind | str) -> bool:
        return TokenKind(kind) in self.enabled
