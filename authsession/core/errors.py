"""Exception types raised by the authentication session."""

from __future__ import annotations


class AuthSessionError(Exception):
    """Base class for all authsession errors."""


class ConfigurationError(AuthSessionError):
    """Session configuration is missing a required value or is unsupported."""


class SessionStateError(AuthSessionError):
    """The session is not in a state that allows the requested operation."""


class StateValidationError(SessionStateError):
    """The callback state parameter is missing, unknown, or already used."""


class AlreadyAuthenticatedError(SessionStateError):
    """A code exchange was attempted while a user session is already active."""


class RenewalPreconditionError(SessionStateError):
    """Token renewal needs both an access token and a refresh token."""


class ApiError(AuthSessionError):
    """The identity provider returned an unusable response."""


class TokenExchangeError(ApiError):
    """The code exchange response did not contain an access token."""


class RenewalResponseError(ApiError):
    """The refresh response did not contain new access and ID tokens."""


class InvalidTokenError(AuthSessionError):
    """An ID token failed signature or claims verification."""


class MissingNonceError(InvalidTokenError):
    """No nonce was found in the transient auth store for this transaction."""
