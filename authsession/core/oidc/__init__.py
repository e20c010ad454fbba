"""Provider-facing OIDC collaborators: API client and ID token verification."""

from authsession.core.oidc.client import AuthenticationClient
from authsession.core.oidc.jwks import (
    AsymmetricVerifier,
    JWKFetcher,
    SignatureVerifier,
    SymmetricVerifier,
)
from authsession.core.oidc.utils import generate_nonce, url_safe_b64decode
from authsession.core.oidc.validation import DEFAULT_LEEWAY, IdTokenVerifier

__all__ = [
    # Client
    "AuthenticationClient",
    # Keys and signatures
    "AsymmetricVerifier",
    "JWKFetcher",
    "SignatureVerifier",
    "SymmetricVerifier",
    # Utils
    "generate_nonce",
    "url_safe_b64decode",
    # Validation
    "DEFAULT_LEEWAY",
    "IdTokenVerifier",
]
