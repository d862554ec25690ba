"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask import jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit — we apply per-route
    storage_uri="memory://",
)


def _bearer_token():
    """Return the bearer token from the Authorization header, or None."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@login_manager.request_loader
def load_user_from_request(req):
    """Resolve the bearer credential to a user via the identity provider.

    No server-side session is kept: every API request carries its own
    token. Imports lazily to avoid circular deps.
    """
    from app.services.identity_service import resolve_user

    token = _bearer_token()
    if token is None:
        return None
    return resolve_user(token)


@login_manager.unauthorized_handler
def unauthorized():
    """JSON 401 instead of the default login redirect."""
    return jsonify({"error": "Unauthorized"}), 401
