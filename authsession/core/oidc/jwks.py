"""JSON Web Key Set retrieval and ID token signature verification."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
import jwt
from jwt import PyJWK, PyJWKSet
from jwt.exceptions import PyJWKSetError

from authsession.core.cache import CacheHandler, NoCacheHandler
from authsession.core.errors import InvalidTokenError

logger = logging.getLogger("authsession.jwks")

# Only the signature is checked here; claims are checked by IdTokenVerifier
_SIGNATURE_ONLY_OPTIONS: dict[str, Any] = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
}


class JWKFetcher:
    """Fetches and caches provider key sets."""

    def __init__(
        self,
        cache: CacheHandler | None = None,
        http_client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the fetcher.

        Args:
            cache: Cache for raw JWKS documents, keyed by URI.
            http_client: HTTP client to use. A plain httpx client is created if omitted.
            timeout: HTTP timeout in seconds when creating a client.
        """
        self.cache = cache or NoCacheHandler()
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=self.timeout)
        return self._http_client

    def fetch_jwks(self, jwks_uri: str) -> dict[str, Any]:
        """Fetch the raw JWKS document.

        Raises:
            httpx.HTTPError: If the request fails.
        """
        response = self.http_client.get(jwks_uri, headers={"Accept": "application/json"})
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    def get_keys(self, jwks_uri: str, force: bool = False) -> dict[str, PyJWK]:
        """Get signing keys indexed by key ID.

        Args:
            jwks_uri: Key set location.
            force: Skip the cache and fetch a fresh document.

        Returns:
            Mapping of ``kid`` to key. Keys without a ``kid`` are left out.
        """
        jwks = None if force else self.cache.get(jwks_uri)
        if jwks is None:
            logger.debug(f"Fetching JWKS from {jwks_uri}")
            jwks = self.fetch_jwks(jwks_uri)
            self.cache.set(jwks_uri, jwks)

        try:
            key_set = PyJWKSet.from_dict(jwks)
        except PyJWKSetError:
            return {}
        return {key.key_id: key for key in key_set.keys if key.key_id}


class SignatureVerifier(ABC):
    """Checks a compact token's signature and returns its payload."""

    algorithm: str

    @abstractmethod
    def _get_key(self, token: str, header: dict[str, Any]) -> Any:
        """Return the key to verify the token with."""

    def verify_and_decode(self, token: str) -> dict[str, Any]:
        """Verify the signature and return the unverified claims.

        Raises:
            InvalidTokenError: If the token is malformed, uses another
                algorithm, or the signature does not match.
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError:
            raise InvalidTokenError("ID token could not be decoded") from None

        alg = header.get("alg")
        if alg != self.algorithm:
            raise InvalidTokenError(
                f'Signature algorithm of "{alg}" is not supported. '
                f'Expected the ID token to be signed with "{self.algorithm}"'
            )

        key = self._get_key(token, header)
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                key,
                algorithms=[self.algorithm],
                options=_SIGNATURE_ONLY_OPTIONS,
            )
        except jwt.InvalidSignatureError:
            raise InvalidTokenError("Invalid ID token signature") from None
        except jwt.PyJWTError as e:
            raise InvalidTokenError(f"ID token could not be decoded: {e}") from None
        return payload


class AsymmetricVerifier(SignatureVerifier):
    """RS256 verifier using the provider's published key set."""

    algorithm = "RS256"

    def __init__(self, jwks_uri: str, fetcher: JWKFetcher) -> None:
        self.jwks_uri = jwks_uri
        self.fetcher = fetcher

    def _get_key(self, token: str, header: dict[str, Any]) -> Any:
        kid = header.get("kid")
        keys = self.fetcher.get_keys(self.jwks_uri)
        if kid not in keys:
            # Key rotation: the cached set may predate the signing key
            keys = self.fetcher.get_keys(self.jwks_uri, force=True)
        if kid not in keys:
            raise InvalidTokenError(f'Could not find a public key for Key ID (kid) "{kid}"')
        return keys[kid].key


class SymmetricVerifier(SignatureVerifier):
    """HS256 verifier using the client secret."""

    algorithm = "HS256"

    def __init__(self, secret: str | bytes) -> None:
        self.secret = secret

    def _get_key(self, token: str, header: dict[str, Any]) -> Any:
        return self.secret
