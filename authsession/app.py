"""Flask application factory."""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import Any

from flask import Flask

from authsession.core.config import DEFAULT_CONFIG_DIR, ResponseMode, SessionConfig, load_config


def _load_secret_key() -> str:
    """Get the Flask secret key from the environment or the config directory."""
    secret_key = os.environ.get("AUTHSESSION_SECRET_KEY")
    if secret_key:
        return secret_key

    key_path = DEFAULT_CONFIG_DIR / "flask_secret.key"
    if key_path.exists():
        return key_path.read_text().strip()

    secret_key = secrets.token_hex(32)
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.write_text(secret_key)
    key_path.chmod(0o600)
    return secret_key


def create_app(
    config: dict[str, Any] | None = None,
    session_config: SessionConfig | None = None,
    config_path: Path | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Optional Flask configuration overrides.
        session_config: Login session configuration. Loaded from the config
            file and environment if not provided.
        config_path: Config file to load the session configuration from.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)
    session_config = session_config or load_config(config_path)

    app.config.from_mapping(SESSION_COOKIE_HTTPONLY=True, SESSION_COOKIE_SAMESITE="Lax")
    if session_config.response_mode == ResponseMode.FORM_POST:
        # The callback is a cross-site POST that must still carry the session cookie
        app.config.from_mapping(SESSION_COOKIE_SAMESITE="None", SESSION_COOKIE_SECURE=True)
    if config:
        app.config.from_mapping(config)
    if not app.config.get("SECRET_KEY"):
        app.config["SECRET_KEY"] = _load_secret_key()

    from authsession import web

    web.init_app(app, session_config)

    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 5000,
    debug: bool = False,
    config_path: Path | None = None,
) -> None:
    """Run the development server."""
    app = create_app(config_path=config_path)
    app.run(host=host, port=port, debug=debug)
