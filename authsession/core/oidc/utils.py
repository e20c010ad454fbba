"""OIDC utility functions."""

from __future__ import annotations

import base64
import secrets


def generate_nonce(length: int = 16) -> str:
    """Generate a random hex nonce.

    Args:
        length: Number of random bytes (the result has twice as many characters).

    Returns:
        Hex-encoded random string.
    """
    return secrets.token_hex(length)


def url_safe_b64decode(value: str) -> bytes:
    """Decode a URL-safe base64 string, restoring any stripped padding.

    Args:
        value: Base64url-encoded string, with or without padding.

    Returns:
        Decoded bytes.
    """
    remainder = len(value) % 4
    if remainder:
        value += "=" * (4 - remainder)
    return base64.urlsafe_b64decode(value)
