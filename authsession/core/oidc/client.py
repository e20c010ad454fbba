"""Provider API client for the Authorization Code flow.

Builds authorize links and performs the token, refresh, and userinfo
calls against an OIDC provider at ``https://{domain}/``.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx

from authsession.core.errors import ConfigurationError
from authsession.core.logging import LoggingClient, ProtocolLogger, get_protocol_logger

DEFAULT_TIMEOUT = 10.0


class AuthenticationClient:
    """Client for the provider's authentication endpoints.

    HTTP failures are not caught here: connection errors and non-2xx
    responses surface as ``httpx.HTTPError`` to the caller.
    """

    def __init__(
        self,
        domain: str,
        client_id: str,
        client_secret: str | None = None,
        http_options: dict[str, Any] | None = None,
        protocol_logger: ProtocolLogger | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            domain: Provider domain.
            client_id: OAuth2 client ID.
            client_secret: OAuth2 client secret (for confidential clients).
            http_options: Keyword arguments for the underlying httpx client.
            protocol_logger: Optional protocol logger for HTTP traffic capture.
            http_client: Pre-built HTTP client, mainly for tests.
        """
        self.domain = domain
        self.client_id = client_id
        self.client_secret = client_secret
        self.http_options = dict(http_options or {})
        self._protocol_logger = protocol_logger or get_protocol_logger()
        self._http_client = http_client

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    @property
    def http_client(self) -> httpx.Client:
        """Get or create HTTP client with logging."""
        if self._http_client is None:
            options = {"timeout": DEFAULT_TIMEOUT, **self.http_options}
            self._http_client = LoggingClient(protocol_logger=self._protocol_logger, **options)
        return self._http_client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def get_authorize_url(
        self,
        response_type: str,
        redirect_uri: str,
        params: dict[str, Any] | None = None,
    ) -> str:
        """Build the provider authorize URL.

        Args:
            response_type: OAuth2 response type.
            redirect_uri: Callback URI.
            params: Additional query parameters; these win over the defaults.

        Returns:
            Fully formed authorize URL.
        """
        query: dict[str, Any] = {
            "response_type": response_type,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
        }
        if params:
            query.update({k: v for k, v in params.items() if v is not None})
        return f"{self.base_url}/authorize?{urlencode(query)}"

    def _token_request(self, data: dict[str, str]) -> dict[str, Any]:
        response = self.http_client.post(
            f"{self.base_url}/oauth/token",
            data=data,
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the callback.
            redirect_uri: The redirect URI used for the authorize request.

        Returns:
            Token endpoint response (``access_token``, ``id_token``, ...).
        """
        data = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return self._token_request(data)

    def refresh(self, refresh_token: str, options: dict[str, Any] | None = None) -> dict[str, Any]:
        """Use a refresh token to obtain new tokens.

        Args:
            refresh_token: Refresh token from an earlier exchange.
            options: Extra token request parameters, e.g. ``scope``.

        Returns:
            Token endpoint response.

        Raises:
            ConfigurationError: If no client secret is configured.
        """
        if not self.client_secret:
            raise ConfigurationError("client_secret is required to refresh tokens")

        data = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
        }
        if options:
            data.update({k: str(v) for k, v in options.items() if v is not None})
        return self._token_request(data)

    def fetch_userinfo(self, access_token: str) -> dict[str, Any]:
        """Fetch user claims from the userinfo endpoint.

        Args:
            access_token: Bearer token for authorization.

        Returns:
            User claims.
        """
        response = self.http_client.get(
            f"{self.base_url}/userinfo",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        response.raise_for_status()
        claims: dict[str, Any] = response.json()
        return claims

    def get_logout_url(self, return_to: str | None = None, federated: bool = False) -> str:
        """Build the provider logout URL.

        Args:
            return_to: Where the provider should send the browser afterwards.
            federated: Also log out of the upstream identity provider.
        """
        params = {"client_id": self.client_id}
        if return_to:
            params["returnTo"] = return_to
        url = f"{self.base_url}/v2/logout?{urlencode(params)}"
        if federated:
            url += "&federated"
        return url
