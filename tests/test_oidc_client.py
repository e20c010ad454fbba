"""Tests for the provider API client."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from authsession.core.errors import ConfigurationError
from authsession.core.logging import LoggingClient
from authsession.core.oidc.client import AuthenticationClient

from conftest import CLIENT_ID, CLIENT_SECRET, DOMAIN, FakeProvider


class TestAuthorizeUrl:
    """Tests for authorize URL construction."""

    def test_base_parameters(self) -> None:
        """Test response type, redirect URI, and client ID are included."""
        client = AuthenticationClient(DOMAIN, CLIENT_ID)
        url = client.get_authorize_url("code", "https://app/cb", {"scope": "openid", "state": "s"})

        parsed = urlparse(url)
        assert parsed.scheme == "https"
        assert parsed.netloc == DOMAIN
        assert parsed.path == "/authorize"
        assert parse_qs(parsed.query) == {
            "response_type": ["code"],
            "redirect_uri": ["https://app/cb"],
            "client_id": [CLIENT_ID],
            "scope": ["openid"],
            "state": ["s"],
        }

    def test_none_values_omitted(self) -> None:
        """Test parameters set to None are left out."""
        client = AuthenticationClient(DOMAIN, CLIENT_ID)
        url = client.get_authorize_url("code", "https://app/cb", {"audience": None})
        assert "audience" not in url


class TestTokenEndpoint:
    """Tests for token endpoint calls."""

    def test_exchange_code(self, provider: FakeProvider) -> None:
        """Test the authorization code grant request."""
        provider.token_response = {"access_token": "a"}
        result = provider.client().exchange_code("the-code", "https://app/cb")

        assert result == {"access_token": "a"}
        request = provider.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"https://{DOMAIN}/oauth/token"
        assert parse_qs(request.content.decode()) == {
            "grant_type": ["authorization_code"],
            "client_id": [CLIENT_ID],
            "client_secret": [CLIENT_SECRET],
            "code": ["the-code"],
            "redirect_uri": ["https://app/cb"],
        }

    def test_exchange_code_public_client(self) -> None:
        """Test no secret is sent when none is configured."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "a"})

        client = AuthenticationClient(
            DOMAIN, CLIENT_ID, http_client=httpx.Client(transport=httpx.MockTransport(handler))
        )
        client.exchange_code("c", "https://app/cb")
        assert "client_secret" not in parse_qs(seen[0].content.decode())

    def test_error_status_raises(self) -> None:
        """Test a provider error response surfaces as an HTTP error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"error": "invalid_grant"})

        client = AuthenticationClient(
            DOMAIN, CLIENT_ID, CLIENT_SECRET, http_client=httpx.Client(transport=httpx.MockTransport(handler))
        )
        with pytest.raises(httpx.HTTPStatusError):
            client.exchange_code("c", "https://app/cb")

    def test_refresh(self, provider: FakeProvider) -> None:
        """Test the refresh token grant request."""
        provider.token_response = {"access_token": "new"}
        provider.client().refresh("r-1", {"scope": "openid"})

        body = parse_qs(provider.requests[0].content.decode())
        assert body["grant_type"] == ["refresh_token"]
        assert body["refresh_token"] == ["r-1"]
        assert body["client_secret"] == [CLIENT_SECRET]
        assert body["scope"] == ["openid"]

    def test_refresh_requires_secret(self) -> None:
        """Test refreshing without a client secret is refused."""
        with pytest.raises(ConfigurationError):
            AuthenticationClient(DOMAIN, CLIENT_ID).refresh("r-1")


class TestUserinfo:
    """Tests for the userinfo call."""

    def test_bearer_header(self, provider: FakeProvider) -> None:
        """Test the access token is sent as a bearer token."""
        provider.userinfo = {"sub": "u"}
        assert provider.client().fetch_userinfo("tok") == {"sub": "u"}
        assert provider.requests[0].headers["Authorization"] == "Bearer tok"


class TestLogoutUrl:
    """Tests for logout URL construction."""

    def test_return_to(self) -> None:
        client = AuthenticationClient(DOMAIN, CLIENT_ID)
        assert client.get_logout_url("https://app/") == (
            f"https://{DOMAIN}/v2/logout?client_id={CLIENT_ID}&returnTo=https%3A%2F%2Fapp%2F"
        )

    def test_federated(self) -> None:
        client = AuthenticationClient(DOMAIN, CLIENT_ID)
        assert client.get_logout_url(federated=True) == f"https://{DOMAIN}/v2/logout?client_id={CLIENT_ID}&federated"


class TestHttpClient:
    """Tests for the lazily created HTTP client."""

    def test_default_client_logs(self) -> None:
        """Test the default client is a logging client with options applied."""
        client = AuthenticationClient(DOMAIN, CLIENT_ID, http_options={"timeout": 3.0})
        http_client = client.http_client

        assert isinstance(http_client, LoggingClient)
        assert http_client.timeout.read == 3.0
        assert client.http_client is http_client

        client.close()
        assert client.http_client is not http_client
        client.close()
