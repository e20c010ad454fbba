"""Pytest configuration and fixtures."""

from __future__ import annotations

import time
from collections.abc import Callable, Generator
from typing import Any

import httpx
import jwt
import pytest
from flask import Flask
from flask.testing import FlaskClient

from authsession.app import create_app
from authsession.core.config import SessionConfig
from authsession.core.oidc.client import AuthenticationClient

DOMAIN = "t.example.com"
CLIENT_ID = "abc"
REDIRECT_URI = "https://app/cb"
ISSUER = f"https://{DOMAIN}/"
CLIENT_SECRET = "test-client-secret-that-is-long-enough-for-hs256"


class FakeProvider:
    """Stands in for the provider's token and userinfo endpoints."""

    def __init__(self) -> None:
        self.token_response: dict[str, Any] = {}
        self.userinfo: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json=self.token_response)
        if request.url.path == "/userinfo":
            return httpx.Response(200, json=self.userinfo)
        return httpx.Response(404, json={"error": "not_found"})

    def client(self) -> AuthenticationClient:
        return AuthenticationClient(
            DOMAIN,
            CLIENT_ID,
            CLIENT_SECRET,
            http_client=httpx.Client(transport=httpx.MockTransport(self)),
        )


def id_token_claims(**overrides: Any) -> dict[str, Any]:
    """Build a valid set of ID token claims."""
    now = int(time.time())
    claims: dict[str, Any] = {
        "iss": ISSUER,
        "sub": "auth0|user123",
        "aud": CLIENT_ID,
        "exp": now + 3600,
        "iat": now,
        "name": "Test User",
        "email": "user@example.com",
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


def mint_hs256(claims: dict[str, Any], secret: str | bytes = CLIENT_SECRET) -> str:
    """Sign claims as an HS256 ID token."""
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def session_config() -> SessionConfig:
    """HS256 configuration so tokens can be minted locally."""
    return SessionConfig(
        domain=DOMAIN,
        client_id=CLIENT_ID,
        redirect_uri=REDIRECT_URI,
        client_secret=CLIENT_SECRET,
        id_token_alg="HS256",
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def mint_id_token() -> Callable[..., str]:
    """Return a function minting an HS256 ID token with claim overrides."""

    def _mint(**overrides: Any) -> str:
        return mint_hs256(id_token_claims(**overrides))

    return _mint


@pytest.fixture
def app(session_config: SessionConfig) -> Generator[Flask, None, None]:
    """Create application for testing."""
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key",
        },
        session_config=session_config,
    )
    yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create test client."""
    return app.test_client()
