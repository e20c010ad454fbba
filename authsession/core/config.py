"""Session configuration management.

Loads the login session configuration from a config.yaml file and
environment variables. Environment variables take precedence over config
file settings, and explicit overrides take precedence over both.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml

from authsession.core.cache import CacheBackend
from authsession.core.errors import ConfigurationError
from authsession.core.oidc.utils import url_safe_b64decode
from authsession.core.state import StateHandlerKind
from authsession.storage.base import StoreBackend

# Default config locations
DEFAULT_CONFIG_DIR = Path.home() / ".authsession"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Environment variable prefix
ENV_PREFIX = "AUTHSESSION_"

DEFAULT_SCOPE = "openid profile email"
SUPPORTED_ID_TOKEN_ALGORITHMS = ("HS256", "RS256")


class ResponseMode(StrEnum):
    """How the provider returns the authorization code."""

    QUERY = "query"
    FORM_POST = "form_post"


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for an authentication session.

    Immutable once constructed. Required values and supported algorithms are
    checked at construction time.
    """

    domain: str
    client_id: str
    redirect_uri: str
    client_secret: str | None = None
    secret_base64_encoded: bool = False
    audience: str | None = None
    response_mode: ResponseMode = ResponseMode.QUERY
    response_type: str = "code"
    scope: str = DEFAULT_SCOPE
    http_options: dict[str, Any] = field(default_factory=dict)
    skip_userinfo: bool = True
    max_age: int | None = None
    id_token_alg: str = "RS256"
    id_token_leeway: int | None = None

    # Persistence toggles
    persist_user: bool = True
    persist_access_token: bool = False
    persist_refresh_token: bool = False
    persist_id_token: bool = False

    # Backend selection
    store: StoreBackend = StoreBackend.SESSION
    auth_store: StoreBackend = StoreBackend.COOKIE
    state_handler: StateHandlerKind = StateHandlerKind.SESSION
    cache_handler: CacheBackend = CacheBackend.NONE

    def __post_init__(self) -> None:
        for name in ("domain", "client_id", "redirect_uri"):
            if not getattr(self, name):
                raise ConfigurationError(f"Invalid {name}")

        if self.id_token_alg not in SUPPORTED_ID_TOKEN_ALGORITHMS:
            raise ConfigurationError('Invalid id_token_alg; must be "HS256" or "RS256"')

        if self.id_token_alg == "HS256" and not self.client_secret:
            raise ConfigurationError("HS256 ID tokens require a client_secret")

        if self.max_age is not None and self.max_age < 0:
            raise ConfigurationError("max_age must not be negative")

        if self.id_token_leeway is not None and self.id_token_leeway < 0:
            raise ConfigurationError("id_token_leeway must not be negative")

        # Coerce plain strings (from YAML or env) to their enums
        self._coerce("response_mode", ResponseMode)
        self._coerce("store", StoreBackend)
        self._coerce("auth_store", StoreBackend)
        self._coerce("state_handler", StateHandlerKind)
        self._coerce("cache_handler", CacheBackend)

        # Cookie values are unsigned and client controlled
        if self.store == StoreBackend.COOKIE:
            raise ConfigurationError(
                "Invalid store: cookie; cookies may only back the transient auth_store"
            )

    def _coerce(self, name: str, enum_type: type[StrEnum]) -> None:
        value = getattr(self, name)
        try:
            object.__setattr__(self, name, enum_type(value))
        except ValueError:
            raise ConfigurationError(f"Invalid {name}: {value}") from None

    @property
    def issuer(self) -> str:
        """Expected ID token issuer."""
        return f"https://{self.domain}/"

    @property
    def jwks_uri(self) -> str:
        """Provider JSON Web Key Set location."""
        return f"{self.issuer}.well-known/jwks.json"

    @property
    def signing_secret(self) -> str | bytes | None:
        """Client secret used for HS256 verification."""
        if self.client_secret and self.secret_base64_encoded:
            return url_safe_b64decode(self.client_secret)
        return self.client_secret

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionConfig:
        """Create SessionConfig from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        if "http_options" in values:
            values["http_options"] = dict(values["http_options"])
        try:
            return cls(
                domain=values.pop("domain", ""),
                client_id=values.pop("client_id", ""),
                redirect_uri=values.pop("redirect_uri", ""),
                **values,
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from None

    def to_dict(self, include_secret: bool = False) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Args:
            include_secret: If False, the client secret is masked.
        """
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, StrEnum):
                value = value.value
            data[f.name] = value
        if self.client_secret and not include_secret:
            data["client_secret"] = "********"
        return data


def _get_env_bool(key: str) -> bool | None:
    """Get a boolean from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return None
    return value.lower() in ("true", "1", "yes", "on")


def _get_env_int(key: str) -> int | None:
    """Get an integer from environment variable."""
    value = os.environ.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer") from None


_ENV_STRINGS = (
    "domain",
    "client_id",
    "client_secret",
    "redirect_uri",
    "audience",
    "scope",
    "response_mode",
    "response_type",
    "id_token_alg",
    "store",
    "auth_store",
    "state_handler",
    "cache_handler",
)
_ENV_INTS = ("max_age", "id_token_leeway")
_ENV_BOOLS = (
    "secret_base64_encoded",
    "skip_userinfo",
    "persist_user",
    "persist_access_token",
    "persist_refresh_token",
    "persist_id_token",
)


def _env_values() -> dict[str, Any]:
    """Collect configuration values from AUTHSESSION_* environment variables."""
    values: dict[str, Any] = {}
    for name in _ENV_STRINGS:
        value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value:
            values[name] = value
    for name in _ENV_INTS:
        int_value = _get_env_int(f"{ENV_PREFIX}{name.upper()}")
        if int_value is not None:
            values[name] = int_value
    for name in _ENV_BOOLS:
        bool_value = _get_env_bool(f"{ENV_PREFIX}{name.upper()}")
        if bool_value is not None:
            values[name] = bool_value
    return values


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SessionConfig:
    """Load session configuration.

    Configuration is loaded in this order (later values override earlier):
    1. Default values
    2. config.yaml file (if exists)
    3. Environment variables
    4. Explicit overrides

    Args:
        config_path: Path to config file. Uses default if not specified.
        overrides: Values that win over file and environment.

    Returns:
        Validated SessionConfig.

    Raises:
        ConfigurationError: If the file cannot be parsed or the merged
            configuration is invalid.
    """
    data: dict[str, Any] = {}

    file_path = config_path or DEFAULT_CONFIG_FILE
    if file_path.exists():
        try:
            with open(file_path) as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read config file {file_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {file_path} must contain a mapping")
        data.update(loaded.get("session", loaded))

    data.update(_env_values())

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    return SessionConfig.from_dict(data)


def get_default_config_yaml() -> str:
    """Get the default config.yaml content as a string.

    Useful for generating example configuration files.
    """
    return """\
# AuthSession Configuration File
# Environment variables override these settings (prefix: AUTHSESSION_)

session:
  # Identity provider domain (issuer is https://<domain>/)
  domain: "tenant.example.com"

  # Application credentials
  client_id: "your-client-id"
  # client_secret: "your-client-secret"
  # secret_base64_encoded: false

  # Callback URL registered with the provider
  redirect_uri: "https://localhost:8443/callback"

  # API identifier to request an access token for
  # audience: "https://api.example.com/"

  scope: "openid profile email"

  # "query" or "form_post"
  response_mode: "query"
  response_type: "code"

  # ID token verification: "RS256" (default) or "HS256"
  id_token_alg: "RS256"
  # id_token_leeway: 60
  # max_age: 3600

  # Use the ID token claims as the user profile instead of calling /userinfo
  skip_userinfo: true

  # Which values are written to the durable store
  persist_user: true
  persist_access_token: false
  persist_refresh_token: false
  persist_id_token: false

  # Backends: session, memory, none (auth_store also accepts cookie)
  store: "session"
  auth_store: "cookie"
  # State handler: session or none
  state_handler: "session"
  # JWKS cache: memory or none
  cache_handler: "none"

  # Options passed to the HTTP client
  http_options:
    timeout: 10.0
"""
