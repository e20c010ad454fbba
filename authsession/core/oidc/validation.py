"""ID token verification.

Checks an OIDC ID token's signature and standard claims: issuer,
subject, audience, expiry, issue time, nonce, authorized party, and
authentication time against a maximum age.
"""

from __future__ import annotations

import time
from typing import Any

from authsession.core.errors import InvalidTokenError
from authsession.core.oidc.jwks import SignatureVerifier

# Clock skew allowed for exp and auth_time checks, in seconds
DEFAULT_LEEWAY = 60


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


class IdTokenVerifier:
    """Validates ID tokens issued for one client by one issuer."""

    def __init__(
        self,
        issuer: str,
        audience: str,
        signature_verifier: SignatureVerifier,
    ) -> None:
        """Initialize the verifier.

        Args:
            issuer: Expected ``iss`` claim.
            audience: Expected ``aud`` claim, the client ID.
            signature_verifier: Verifier for the configured signing algorithm.
        """
        self.issuer = issuer
        self.audience = audience
        self.signature_verifier = signature_verifier

    def verify(
        self,
        token: str,
        leeway: int | None = None,
        max_age: int | None = None,
        nonce: str | None = None,
        now: float | None = None,
    ) -> dict[str, Any]:
        """Verify a compact ID token.

        Args:
            token: Compact JWS string.
            leeway: Clock skew in seconds. Defaults to DEFAULT_LEEWAY.
            max_age: Maximum seconds since ``auth_time``; skipped if None.
            nonce: Expected ``nonce`` claim; skipped if None.
            now: Current Unix time, for tests.

        Returns:
            Verified claims.

        Raises:
            InvalidTokenError: On any signature or claim failure.
        """
        if not token:
            raise InvalidTokenError("ID token is required but missing")

        claims = self.signature_verifier.verify_and_decode(token)

        leeway = DEFAULT_LEEWAY if leeway is None else leeway
        now = time.time() if now is None else now

        iss = claims.get("iss")
        if not isinstance(iss, str) or not iss:
            raise InvalidTokenError("Issuer (iss) claim must be a string present in the ID token")
        if iss != self.issuer:
            raise InvalidTokenError(
                f'Issuer (iss) claim mismatch in the ID token; expected "{self.issuer}", found "{iss}"'
            )

        sub = claims.get("sub")
        if not isinstance(sub, str) or not sub:
            raise InvalidTokenError("Subject (sub) claim must be a string present in the ID token")

        aud = claims.get("aud")
        if isinstance(aud, str):
            audiences = [aud]
        elif isinstance(aud, list) and aud:
            audiences = aud
        else:
            raise InvalidTokenError(
                "Audience (aud) claim must be a string or array of strings present in the ID token"
            )
        if self.audience not in audiences:
            raise InvalidTokenError(
                f'Audience (aud) claim mismatch in the ID token; expected "{self.audience}" '
                f'but was not one of "{", ".join(map(str, audiences))}"'
            )

        exp = claims.get("exp")
        if not _is_number(exp):
            raise InvalidTokenError("Expiration Time (exp) claim must be a number present in the ID token")
        if now > exp + leeway:
            raise InvalidTokenError(
                f"Expiration Time (exp) claim error in the ID token; current time ({int(now)}) "
                f"is after expiration time ({int(exp + leeway)})"
            )

        if not _is_number(claims.get("iat")):
            raise InvalidTokenError("Issued At (iat) claim must be a number present in the ID token")

        if nonce is not None:
            token_nonce = claims.get("nonce")
            if not isinstance(token_nonce, str) or not token_nonce:
                raise InvalidTokenError("Nonce (nonce) claim must be a string present in the ID token")
            if token_nonce != nonce:
                raise InvalidTokenError(
                    f'Nonce (nonce) claim mismatch in the ID token; expected "{nonce}", found "{token_nonce}"'
                )

        if len(audiences) > 1:
            azp = claims.get("azp")
            if not isinstance(azp, str) or not azp:
                raise InvalidTokenError(
                    "Authorized Party (azp) claim must be a string present in the ID token "
                    "when Audience (aud) claim has multiple values"
                )
            if azp != self.audience:
                raise InvalidTokenError(
                    f'Authorized Party (azp) claim mismatch in the ID token; expected "{self.audience}", '
                    f'found "{azp}"'
                )

        if max_age is not None:
            auth_time = claims.get("auth_time")
            if not _is_number(auth_time):
                raise InvalidTokenError(
                    "Authentication Time (auth_time) claim must be a number present in the ID token "
                    "when Max Age (max_age) is specified"
                )
            auth_valid_until = auth_time + max_age + leeway
            if now > auth_valid_until:
                raise InvalidTokenError(
                    f"Authentication Time (auth_time) claim in the ID token indicates that too much time "
                    f"has passed since the last end-user authentication. Current time ({int(now)}) "
                    f"is after last auth at {int(auth_valid_until)}"
                )

        return claims
