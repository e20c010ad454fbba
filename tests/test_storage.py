"""Tests for stores, state handlers, and cache handlers."""

import time

import pytest
from flask import Flask, jsonify, session

from authsession.core.cache import (
    CacheBackend,
    MemoryCacheHandler,
    NoCacheHandler,
    build_cache_handler,
)
from authsession.core.errors import ConfigurationError
from authsession.core.state import (
    STATE_KEY,
    DummyStateHandler,
    SessionStateHandler,
    StateHandlerKind,
    build_state_handler,
)
from authsession.storage import (
    CookieStore,
    EmptyStore,
    MemoryStore,
    SessionStore,
    StoreBackend,
    build_store,
)


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_get_set_delete(self) -> None:
        store = MemoryStore()
        store.set("k", {"a": 1})
        assert store.get("k") == {"a": 1}

        store.delete("k")
        assert store.get("k") is None
        assert store.get("k", "fallback") == "fallback"
        store.delete("k")

    def test_pop_consumes(self) -> None:
        """Test a popped value can only be read once."""
        store = MemoryStore()
        store.set("nonce", "n-1")
        assert store.pop("nonce") == "n-1"
        assert store.pop("nonce") is None
        assert store.keys() == []

    def test_ttl(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test entries expire after the configured lifetime."""
        now = 1000.0
        monkeypatch.setattr(time, "monotonic", lambda: now)
        store = MemoryStore(ttl=10)
        store.set("k", "v")

        now = 1009.0
        assert store.get("k") == "v"
        now = 1010.0
        assert store.get("k") is None
        assert store.keys() == []


class TestEmptyStore:
    """Tests for EmptyStore."""

    def test_persists_nothing(self) -> None:
        store = EmptyStore()
        store.set("k", "v")
        assert store.get("k") is None
        assert store.pop("k", "default") == "default"
        store.delete("k")


class TestSessionStore:
    """Tests for the Flask session store."""

    def test_prefixed_keys(self) -> None:
        """Test values are namespaced inside the Flask session."""
        app = Flask(__name__)
        app.secret_key = "test"
        store = SessionStore()

        with app.test_request_context("/"):
            store.set("user", {"sub": "u"})
            assert session["authsession_user"] == {"sub": "u"}
            assert store.get("user") == {"sub": "u"}
            assert store.pop("user") == {"sub": "u"}
            assert "authsession_user" not in session
            store.delete("user")


def _cookie_app(store: CookieStore) -> Flask:
    app = Flask(__name__)

    @app.route("/set")
    def set_value():
        store.set("nonce", "n-1")
        store.set("max_age", 300)
        return jsonify(nonce=store.get("nonce"))

    @app.route("/read")
    def read_value():
        return jsonify(nonce=store.get("nonce"), max_age=store.get("max_age"))

    @app.route("/pop")
    def pop_value():
        return jsonify(nonce=store.pop("nonce"), again=store.get("nonce"))

    return app


class TestCookieStore:
    """Tests for the response cookie store."""

    def test_round_trip(self) -> None:
        """Test values written in one request are read in the next."""
        client = _cookie_app(CookieStore()).test_client()

        assert client.get("/set").get_json() == {"nonce": "n-1"}
        assert client.get("/read").get_json() == {"nonce": "n-1", "max_age": 300}

    def test_pop_clears_cookie(self) -> None:
        """Test a consumed value is deleted from the browser."""
        client = _cookie_app(CookieStore()).test_client()
        client.get("/set")

        response = client.get("/pop")
        assert response.get_json() == {"nonce": "n-1", "again": None}
        assert client.get("/read").get_json()["nonce"] is None

    def test_cookie_attributes(self) -> None:
        """Test cookies are HttpOnly with the configured SameSite."""
        client = _cookie_app(CookieStore()).test_client()
        headers = client.get("/set").headers.getlist("Set-Cookie")

        nonce_cookie = next(h for h in headers if h.startswith("authsession_nonce="))
        assert "HttpOnly" in nonce_cookie
        assert "SameSite=Lax" in nonce_cookie
        assert "Max-Age=600" in nonce_cookie
        assert "Secure" not in nonce_cookie

    def test_same_site_none_is_secure(self) -> None:
        """Test SameSite=None cookies are always marked Secure."""
        store = CookieStore(same_site="None")
        client = _cookie_app(store).test_client()
        headers = client.get("/set").headers.getlist("Set-Cookie")

        assert store.secure is True
        assert all("SameSite=None" in h and "Secure" in h for h in headers)

    def test_stores_in_one_request_keep_their_attributes(self) -> None:
        """Test two cookie stores writing in one request each use their own settings."""
        lax = CookieStore()
        cross_site = CookieStore(prefix="transient_", same_site="None")
        app = Flask(__name__)

        @app.route("/both")
        def both():
            lax.set("user", "u-1")
            cross_site.set("nonce", "n-1")
            return jsonify(ok=True)

        headers = app.test_client().get("/both").headers.getlist("Set-Cookie")

        lax_cookie = next(h for h in headers if h.startswith("authsession_user="))
        cross_cookie = next(h for h in headers if h.startswith("transient_nonce="))
        assert "SameSite=Lax" in lax_cookie
        assert "Secure" not in lax_cookie
        assert "SameSite=None" in cross_cookie
        assert "Secure" in cross_cookie


class TestBuildStore:
    """Tests for store selection."""

    @pytest.mark.parametrize(
        ("backend", "expected"),
        [
            (StoreBackend.SESSION, SessionStore),
            (StoreBackend.COOKIE, CookieStore),
            ("memory", MemoryStore),
            ("none", EmptyStore),
        ],
    )
    def test_backends(self, backend, expected) -> None:
        assert isinstance(build_store(backend), expected)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError):
            build_store("redis")


class TestStateHandlers:
    """Tests for CSRF state handlers."""

    def test_issue_and_validate(self) -> None:
        store = MemoryStore()
        handler = SessionStateHandler(store)
        state = handler.issue()

        assert store.get(STATE_KEY) == state
        assert handler.validate(state) is True

    def test_state_is_single_use(self) -> None:
        """Test the expected value is cleared by validation."""
        handler = SessionStateHandler(MemoryStore())
        state = handler.issue()
        assert handler.validate(state) is True
        assert handler.validate(state) is False

    def test_mismatch_clears_expected_value(self) -> None:
        """Test a failed validation also consumes the expected value."""
        handler = SessionStateHandler(MemoryStore())
        state = handler.issue()
        assert handler.validate("wrong") is False
        assert handler.validate(state) is False

    def test_missing_values(self) -> None:
        handler = SessionStateHandler(MemoryStore())
        assert handler.validate("anything") is False
        handler.issue()
        assert handler.validate(None) is False

    def test_stored_external_state(self) -> None:
        handler = SessionStateHandler(MemoryStore())
        handler.store("external")
        assert handler.validate("external") is True

    def test_issued_values_differ(self) -> None:
        handler = SessionStateHandler(MemoryStore())
        assert handler.issue() != handler.issue()

    def test_dummy_accepts_anything(self) -> None:
        handler = DummyStateHandler()
        assert handler.issue()
        assert handler.validate(None) is True
        assert handler.validate("whatever") is True

    def test_build_state_handler(self) -> None:
        assert isinstance(build_state_handler(StateHandlerKind.NONE), DummyStateHandler)
        assert isinstance(build_state_handler("session", MemoryStore()), SessionStateHandler)
        with pytest.raises(ConfigurationError):
            build_state_handler("session")
        with pytest.raises(ConfigurationError):
            build_state_handler("cookie", MemoryStore())


class TestCacheHandlers:
    """Tests for key set cache handlers."""

    def test_memory_cache_expiry(self, monkeypatch: pytest.MonkeyPatch) -> None:
        now = 0.0
        monkeypatch.setattr(time, "monotonic", lambda: now)
        cache = MemoryCacheHandler(ttl=60)
        cache.set("jwks", {"keys": []})

        assert cache.get("jwks") == {"keys": []}
        now = 61.0
        assert cache.get("jwks") is None

    def test_memory_cache_delete(self) -> None:
        cache = MemoryCacheHandler()
        cache.set("jwks", {"keys": []})
        cache.delete("jwks")
        assert cache.get("jwks") is None

    def test_no_cache(self) -> None:
        cache = NoCacheHandler()
        cache.set("jwks", {"keys": []})
        assert cache.get("jwks") is None

    def test_build_cache_handler(self) -> None:
        """Test the memory backend is shared across builds."""
        assert isinstance(build_cache_handler(CacheBackend.NONE), NoCacheHandler)
        shared = build_cache_handler("memory")
        assert isinstance(shared, MemoryCacheHandler)
        assert build_cache_handler("memory") is shared
        with pytest.raises(ConfigurationError):
            build_cache_handler("redis")
