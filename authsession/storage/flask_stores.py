"""Stores backed by the Flask request: the signed session and plain cookies."""

from __future__ import annotations

import json
from typing import Any

from flask import after_this_request, g, has_request_context, request, session
from flask.wrappers import Response

from authsession.storage.base import Store

DEFAULT_PREFIX = "authsession_"

# Transient cookies only need to survive one login round trip
DEFAULT_COOKIE_EXPIRATION = 600

_PENDING_COOKIES_ATTR = "_authsession_pending_cookies"


class SessionStore(Store):
    """Store backed by the Flask session.

    Keys are namespaced with a prefix so they do not collide with other
    values the application keeps in its session.
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str, default: Any = None) -> Any:
        return session.get(self._key(key), default)

    def set(self, key: str, value: Any) -> None:
        session[self._key(key)] = value

    def delete(self, key: str) -> None:
        session.pop(self._key(key), None)

    def pop(self, key: str, default: Any = None) -> Any:
        return session.pop(self._key(key), default)


class CookieStore(Store):
    """Store backed by individual response cookies.

    Reads come from the inbound request. Writes are queued for the current
    request and written to the outgoing response; later reads in the same
    request see the queued values. Values are JSON encoded and unsigned, so
    this store only holds transient transaction data, never identity.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        expiration: int = DEFAULT_COOKIE_EXPIRATION,
        same_site: str = "Lax",
        secure: bool | None = None,
        path: str = "/",
    ) -> None:
        """Initialize the cookie store.

        Args:
            prefix: Cookie name prefix.
            expiration: Cookie lifetime in seconds.
            same_site: SameSite attribute ("Lax", "Strict" or "None").
            secure: Secure attribute. Defaults to True when same_site is "None".
            path: Cookie path.
        """
        self.prefix = prefix
        self.expiration = expiration
        self.same_site = same_site
        self.secure = secure if secure is not None else same_site == "None"
        self.path = path

    def _name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @property
    def _pending_attr(self) -> str:
        # Queued writes are per store instance and carry that store's attributes
        return f"{_PENDING_COOKIES_ATTR}_{id(self)}"

    def _pending(self) -> dict[str, str | None]:
        pending: dict[str, str | None] | None = g.get(self._pending_attr)
        if pending is None:
            pending = {}
            setattr(g, self._pending_attr, pending)
            if has_request_context():
                after_this_request(self.apply)
        return pending

    def get(self, key: str, default: Any = None) -> Any:
        name = self._name(key)
        pending = self._pending()
        if name in pending:
            raw = pending[name]
        else:
            raw = request.cookies.get(name)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    def set(self, key: str, value: Any) -> None:
        self._pending()[self._name(key)] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._pending()[self._name(key)] = None

    def apply(self, response: Response) -> Response:
        """Write queued cookie changes to a response."""
        pending: dict[str, str | None] = g.get(self._pending_attr) or {}
        for name, value in pending.items():
            if value is None:
                response.delete_cookie(
                    name,
                    path=self.path,
                    secure=self.secure,
                    httponly=True,
                    samesite=self.same_site,
                )
            else:
                response.set_cookie(
                    name,
                    value,
                    max_age=self.expiration,
                    path=self.path,
                    secure=self.secure,
                    httponly=True,
                    samesite=self.same_site,
                )
        pending.clear()
        return response
