"""Authentication session orchestration.

``AuthSession`` drives one Authorization Code transaction: it builds the
login redirect, completes the code exchange on the callback, verifies the
ID token against the nonce issued at login, and keeps the resulting user
and tokens in memory and, subject to the persistence policy, in the
durable store.

An instance is meant to live for a single inbound request.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from flask import redirect

from authsession.core.cache import CacheHandler, build_cache_handler
from authsession.core.config import ResponseMode, SessionConfig
from authsession.core.errors import (
    AlreadyAuthenticatedError,
    ConfigurationError,
    InvalidTokenError,
    MissingNonceError,
    RenewalPreconditionError,
    RenewalResponseError,
    StateValidationError,
    TokenExchangeError,
)
from authsession.core.logging import ProtocolLogger
from authsession.core.oidc.client import AuthenticationClient
from authsession.core.oidc.jwks import AsymmetricVerifier, JWKFetcher, SymmetricVerifier
from authsession.core.oidc.utils import generate_nonce
from authsession.core.oidc.validation import IdTokenVerifier
from authsession.core.policy import ALL_KINDS, PersistencePolicy, TokenKind
from authsession.core.state import StateHandler, build_state_handler
from authsession.storage import Store, StoreBackend, build_store

if TYPE_CHECKING:
    from flask import Request
    from werkzeug.wrappers import Response as WerkzeugResponse

logger = logging.getLogger("authsession.session")

# Transient auth store keys
NONCE_KEY = "nonce"
MAX_AGE_KEY = "max_age"


@dataclass(frozen=True)
class CallbackRequest:
    """The inbound request fields read on the authorization callback."""

    query: Mapping[str, str] = field(default_factory=dict)
    form: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_flask(cls, request: Request) -> CallbackRequest:
        """Capture query string and form body from a Flask request."""
        return cls(query=request.args.to_dict(), form=request.form.to_dict())

    def params(self, response_mode: ResponseMode) -> Mapping[str, str]:
        """Return the fields the provider uses for the given response mode."""
        if response_mode == ResponseMode.FORM_POST:
            return self.form
        return self.query


def _build_auth_store(config: SessionConfig) -> Store:
    if config.auth_store == StoreBackend.COOKIE:
        # form_post callbacks are cross-site POSTs and only carry SameSite=None cookies
        same_site = "None" if config.response_mode == ResponseMode.FORM_POST else "Lax"
        return build_store(config.auth_store, same_site=same_site)
    return build_store(config.auth_store)


class AuthSession:
    """Login session for one OIDC client.

    Collaborators that are not passed in are built from the configuration.
    """

    def __init__(
        self,
        config: SessionConfig,
        request: CallbackRequest | None = None,
        *,
        store: Store | None = None,
        auth_store: Store | None = None,
        state_handler: StateHandler | None = None,
        cache_handler: CacheHandler | None = None,
        client: AuthenticationClient | None = None,
        token_verifier: IdTokenVerifier | None = None,
        protocol_logger: ProtocolLogger | None = None,
    ) -> None:
        """Initialize the session and restore persisted values.

        Args:
            config: Session configuration.
            request: Callback request fields, used by the lazy code exchange.
            store: Durable store for user and tokens.
            auth_store: Transient store for nonce and max_age.
            state_handler: CSRF state handler.
            cache_handler: Cache for provider key sets.
            client: Provider API client.
            token_verifier: ID token verifier.
            protocol_logger: Protocol logger for the default API client.
        """
        self.config = config
        self.policy = PersistencePolicy.from_config(config)
        self.request = request or CallbackRequest()

        self.store = store if store is not None else build_store(config.store)
        self.auth_store = auth_store if auth_store is not None else _build_auth_store(config)
        if state_handler is None:
            state_handler = build_state_handler(config.state_handler, build_store(StoreBackend.SESSION))
        self.state_handler = state_handler
        self.cache_handler = cache_handler or build_cache_handler(config.cache_handler)
        self.client = client or AuthenticationClient(
            domain=config.domain,
            client_id=config.client_id,
            client_secret=config.client_secret,
            http_options=config.http_options,
            protocol_logger=protocol_logger,
        )
        self._token_verifier = token_verifier

        self._exchange_attempted = False
        self._id_token_claims: dict[str, Any] | None = None

        self._user: dict[str, Any] | None = self.store.get(TokenKind.USER)
        self._access_token: str | None = self.store.get(TokenKind.ACCESS_TOKEN)
        self._id_token: str | None = self.store.get(TokenKind.ID_TOKEN)
        self._refresh_token: str | None = self.store.get(TokenKind.REFRESH_TOKEN)

    @property
    def token_verifier(self) -> IdTokenVerifier:
        """Get or create the ID token verifier for the configured algorithm."""
        if self._token_verifier is None:
            if self.config.id_token_alg == "RS256":
                fetcher = JWKFetcher(self.cache_handler, self.client.http_client)
                signature_verifier: AsymmetricVerifier | SymmetricVerifier = AsymmetricVerifier(
                    self.config.jwks_uri, fetcher
                )
            else:
                signature_verifier = SymmetricVerifier(self.config.signing_secret or "")
            self._token_verifier = IdTokenVerifier(
                self.config.issuer,
                self.config.client_id,
                signature_verifier,
            )
        return self._token_verifier

    # -- Login ---------------------------------------------------------------

    def get_login_url(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        state: str | None = None,
        connection: str | None = None,
    ) -> str:
        """Build the authorize URL and record the transaction state.

        Caller parameters win over configured defaults; empty values are
        dropped. A ``state`` is issued unless one is supplied, in which case
        the supplied value is registered for validation. A fresh ``nonce`` is
        generated unless supplied. The nonce and max_age are written to the
        transient auth store.

        Args:
            params: Additional authorize parameters.
            state: Pre-generated state value.
            connection: Provider connection name.

        Returns:
            Authorize URL.
        """
        auth_params: dict[str, Any] = {
            "scope": self.config.scope,
            "audience": self.config.audience,
            "response_mode": self.config.response_mode.value,
            "response_type": self.config.response_type,
            "redirect_uri": self.config.redirect_uri,
            "max_age": self.config.max_age,
        }
        if state:
            auth_params["state"] = state
        if connection:
            auth_params["connection"] = connection
        if params:
            auth_params.update(params)
        auth_params = {k: v for k, v in auth_params.items() if v is not None and v != ""}
        if "max_age" in auth_params:
            try:
                auth_params["max_age"] = int(auth_params["max_age"])
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"max_age must be an integer, got {auth_params['max_age']!r}"
                ) from None

        if auth_params.get("state"):
            self.state_handler.store(auth_params["state"])
        else:
            auth_params["state"] = self.state_handler.issue()

        if not auth_params.get("nonce"):
            auth_params["nonce"] = generate_nonce()

        self.auth_store.set(NONCE_KEY, auth_params["nonce"])
        if "max_age" in auth_params:
            self.auth_store.set(MAX_AGE_KEY, auth_params["max_age"])
        else:
            self.auth_store.delete(MAX_AGE_KEY)

        response_type = auth_params.pop("response_type", self.config.response_type)
        redirect_uri = auth_params.pop("redirect_uri", self.config.redirect_uri)
        url = self.client.get_authorize_url(response_type, redirect_uri, auth_params)
        logger.info(f"Issued authorize URL for client {self.config.client_id}")
        return url

    def login(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        state: str | None = None,
        connection: str | None = None,
    ) -> WerkzeugResponse:
        """Return a redirect response to the provider's login page."""
        return redirect(self.get_login_url(params, state=state, connection=connection))

    # -- Code exchange -------------------------------------------------------

    def complete_authentication(self, request: CallbackRequest | None = None) -> bool:
        """Exchange the callback's authorization code for tokens.

        Safe to call on every request: returns False without side effects
        when the request carries no code.

        Args:
            request: Callback request. Defaults to the one bound at construction.

        Returns:
            True if a code was exchanged.

        Raises:
            StateValidationError: If the state is missing, unknown, or used.
            AlreadyAuthenticatedError: If a user is already held in the session.
            TokenExchangeError: If the provider returned no access token.
            InvalidTokenError: If the ID token fails verification.
            httpx.HTTPError: If a provider call fails.
        """
        self._exchange_attempted = True
        params = (request or self.request).params(self.config.response_mode)
        code = params.get("code")
        if not code:
            return False

        if not self.state_handler.validate(params.get("state")):
            raise StateValidationError("Invalid state")

        if self._user:
            raise AlreadyAuthenticatedError(
                "Can't initialize a new session while there is one active session already"
            )

        response = self.client.exchange_code(code, self.config.redirect_uri)

        access_token = response.get("access_token")
        if not access_token:
            raise TokenExchangeError("Invalid access_token - Retry login.")

        self.set_access_token(access_token)

        if response.get("refresh_token"):
            self.set_refresh_token(response["refresh_token"])

        if response.get("id_token"):
            self.set_id_token(response["id_token"])

        if self.config.skip_userinfo:
            user = self._id_token_claims
        else:
            user = self.client.fetch_userinfo(access_token)

        if user:
            self.set_user(user)

        logger.info(f"Completed code exchange for client {self.config.client_id}")
        return True

    def ensure_authenticated(self, request: CallbackRequest | None = None) -> bool:
        """Run the code exchange unless this session has already attempted one.

        Accessors call this when a value is missing, so reading the user or a
        token may perform network calls and store writes.

        Returns:
            Whether a user is now held in the session.
        """
        if not self._exchange_attempted:
            self.complete_authentication(request)
        return self.is_authenticated

    # -- Accessors -----------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return bool(self._user)

    @property
    def id_token_claims(self) -> dict[str, Any] | None:
        """Claims of the ID token verified in this session, if any."""
        return self._id_token_claims

    def get_user(self) -> dict[str, Any] | None:
        if not self._user:
            self.ensure_authenticated()
        return self._user

    def get_access_token(self) -> str | None:
        if not self._access_token:
            self.ensure_authenticated()
        return self._access_token

    def get_id_token(self) -> str | None:
        if not self._id_token:
            self.ensure_authenticated()
        return self._id_token

    def get_refresh_token(self) -> str | None:
        if not self._refresh_token:
            self.ensure_authenticated()
        return self._refresh_token

    # -- Setters -------------------------------------------------------------

    def _persist(self, kind: TokenKind, value: Any) -> None:
        if self.policy.is_enabled(kind):
            self.store.set(kind, value)

    def set_user(self, user: dict[str, Any]) -> None:
        self._persist(TokenKind.USER, user)
        self._user = user

    def set_access_token(self, access_token: str) -> None:
        self._persist(TokenKind.ACCESS_TOKEN, access_token)
        self._access_token = access_token

    def set_refresh_token(self, refresh_token: str) -> None:
        self._persist(TokenKind.REFRESH_TOKEN, refresh_token)
        self._refresh_token = refresh_token

    def set_id_token(self, id_token: str) -> None:
        """Verify an ID token from the login transaction and store it.

        The nonce and max_age recorded at login are consumed from the
        transient auth store before verification, whatever its outcome.

        Raises:
            MissingNonceError: If no nonce was recorded for this transaction.
            InvalidTokenError: If verification fails or the stored max_age is unusable.
        """
        max_age = self.auth_store.pop(MAX_AGE_KEY)
        if max_age is None:
            max_age = self.config.max_age
        nonce = self.auth_store.pop(NONCE_KEY)
        if not nonce:
            raise MissingNonceError("Nonce value not found in application store")

        try:
            max_age = int(max_age) if max_age is not None else None
        except (TypeError, ValueError):
            raise InvalidTokenError(f"Stored max_age is not an integer: {max_age!r}") from None

        self._store_id_token(id_token, max_age=max_age, nonce=nonce)

    def _store_id_token(self, id_token: str, max_age: int | None = None, nonce: str | None = None) -> None:
        claims = self.token_verifier.verify(
            id_token,
            leeway=self.config.id_token_leeway,
            max_age=max_age,
            nonce=nonce,
        )
        logger.debug(f"Verified ID token for subject {claims.get('sub')}")
        self._id_token_claims = claims
        self._persist(TokenKind.ID_TOKEN, id_token)
        self._id_token = id_token

    # -- Renewal and logout --------------------------------------------------

    def renew_tokens(self, options: Mapping[str, Any] | None = None) -> None:
        """Renew the access and ID tokens with the refresh token.

        The renewed ID token is verified without nonce or max_age checks.

        Args:
            options: Token request options, e.g. ``scope``.

        Raises:
            RenewalPreconditionError: If no access token or refresh token is held.
            RenewalResponseError: If the response lacks an access or ID token.
            InvalidTokenError: If the new ID token fails verification.
        """
        if not self._access_token:
            raise RenewalPreconditionError("Can't renew the access token if there isn't one valid")
        if not self._refresh_token:
            raise RenewalPreconditionError(
                "Can't renew the access token if there isn't a refresh token available"
            )

        response = self.client.refresh(self._refresh_token, dict(options or {}))

        if not response.get("access_token") or not response.get("id_token"):
            raise RenewalResponseError("Token did not refresh correctly. Access or ID token not provided.")

        self.set_access_token(response["access_token"])
        self._store_id_token(response["id_token"])

        # Providers with refresh token rotation return a replacement
        if response.get("refresh_token"):
            self.set_refresh_token(response["refresh_token"])

        logger.info(f"Renewed tokens for client {self.config.client_id}")

    def delete_all_persistent_data(self) -> None:
        """Delete every persistable key, whether or not it is enabled."""
        for kind in sorted(ALL_KINDS):
            self.store.delete(kind)

    def logout(self) -> None:
        """Clear persisted and in-memory session identity."""
        self.delete_all_persistent_data()
        self._user = None
        self._access_token = None
        self._id_token = None
        self._refresh_token = None
        self._id_token_claims = None
        logger.info(f"Logged out session for client {self.config.client_id}")

    def get_logout_url(self, return_to: str | None = None, federated: bool = False) -> str:
        """Build the provider logout URL."""
        return self.client.get_logout_url(return_to=return_to, federated=federated)

    def close(self) -> None:
        """Release the provider HTTP client."""
        self.client.close()
