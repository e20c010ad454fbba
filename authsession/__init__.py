"""AuthSession - OAuth2/OIDC login session orchestration."""

__version__ = "0.1.0"
