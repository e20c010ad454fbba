"""Flask routes for the login, callback, and logout round trip."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flask import Blueprint, Flask, current_app, g, redirect, request, url_for

from authsession.core.config import SessionConfig
from authsession.core.errors import ApiError, InvalidTokenError, SessionStateError
from authsession.core.session import AuthSession, CallbackRequest

if TYPE_CHECKING:
    from werkzeug.wrappers import Response as WerkzeugResponse

logger = logging.getLogger("authsession.web")

EXTENSION_KEY = "authsession"

auth_bp = Blueprint("auth", __name__)


def get_auth_session() -> AuthSession:
    """Get the AuthSession for the current request, creating it on first use."""
    if "auth_session" not in g:
        config: SessionConfig = current_app.extensions[EXTENSION_KEY]
        g.auth_session = AuthSession(config, CallbackRequest.from_flask(request))
    auth_session: AuthSession = g.auth_session
    return auth_session


@auth_bp.teardown_app_request
def close_auth_session(exc: BaseException | None) -> None:
    auth_session = g.pop("auth_session", None)
    if auth_session is not None:
        auth_session.close()


def _error_response(error: str, description: str, status: int = 400) -> tuple[dict[str, str], int]:
    return {"error": error, "error_description": description}, status


@auth_bp.route("/")
def index() -> dict[str, Any]:
    """Report whether the browser has an active session."""
    return {"authenticated": get_auth_session().is_authenticated}


@auth_bp.route("/health")
def health() -> dict[str, str]:
    """Health check endpoint (unauthenticated)."""
    return {"status": "healthy"}


@auth_bp.route("/login")
def login() -> WerkzeugResponse:
    """Redirect to the provider's login page."""
    connection = request.args.get("connection")
    return get_auth_session().login(connection=connection)


@auth_bp.route("/callback", methods=["GET", "POST"])
def callback() -> WerkzeugResponse | tuple[dict[str, str], int]:
    """Complete the login transaction."""
    auth_session = get_auth_session()
    params = CallbackRequest.from_flask(request).params(auth_session.config.response_mode)

    # Provider-side failure, e.g. the user declined consent
    if params.get("error"):
        return _error_response(params["error"], params.get("error_description", ""))

    try:
        exchanged = auth_session.complete_authentication()
    except (SessionStateError, ApiError, InvalidTokenError) as e:
        logger.warning(f"Login callback rejected: {type(e).__name__}: {e}")
        return _error_response(type(e).__name__, str(e))

    if not exchanged:
        return redirect(url_for("auth.login"))
    return redirect(url_for("auth.profile"))


@auth_bp.route("/profile")
def profile() -> dict[str, Any] | tuple[dict[str, str], int]:
    """Return the signed-in user's claims."""
    user = get_auth_session().get_user()
    if not user:
        return _error_response("not_authenticated", "No active session", 401)
    return {"user": user}


@auth_bp.route("/renew", methods=["POST"])
def renew() -> dict[str, Any] | tuple[dict[str, str], int]:
    """Renew tokens with the stored refresh token."""
    auth_session = get_auth_session()
    try:
        auth_session.renew_tokens()
    except (SessionStateError, ApiError, InvalidTokenError) as e:
        return _error_response(type(e).__name__, str(e))
    return {"renewed": True}


@auth_bp.route("/logout")
def logout() -> WerkzeugResponse:
    """Clear the session and log out at the provider."""
    auth_session = get_auth_session()
    auth_session.logout()
    return redirect(auth_session.get_logout_url(return_to=url_for("auth.index", _external=True)))


def init_app(app: Flask, session_config: SessionConfig) -> None:
    """Register the session configuration and routes with the Flask app."""
    app.extensions[EXTENSION_KEY] = session_config
    app.register_blueprint(auth_bp)
