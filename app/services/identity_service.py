"""Identity service — resolves a bearer token to a user via Supabase Auth.

The access token is a Supabase session JWT. Rather than verifying it
locally, we ask the auth server who it belongs to (GET /auth/v1/user),
which also honours sign-outs and revoked sessions.

Any failure resolves to "no user": the gateway answers 401 and does
nothing else.
"""

import logging

import requests
from flask import current_app
from flask_login import UserMixin

logger = logging.getLogger(__name__)


class AuthenticatedUser(UserMixin):
    """The caller, as the identity provider knows them. Not a DB row."""

    def __init__(self, id, email=None):
        self.id = id
        self.email = email

    def __repr__(self):
        return f"<AuthenticatedUser {self.id}>"


def resolve_user(access_token):
    """Return an AuthenticatedUser for a valid token, else None."""
    base_url = current_app.config.get("SUPABASE_URL")
    anon_key = current_app.config.get("SUPABASE_ANON_KEY")
    if not base_url or not anon_key:
        logger.error("Identity provider not configured (SUPABASE_URL / SUPABASE_ANON_KEY)")
        return None

    try:
        resp = requests.get(
            f"{base_url.rstrip('/')}/auth/v1/user",
            headers={
                "Authorization": f"Bearer {access_token}",
                "apikey": anon_key,
            },
            timeout=current_app.config.get("IDENTITY_TIMEOUT", 10),
        )
    except requests.exceptions.Timeout:
        logger.warning("Identity provider timed out resolving a token")
        return None
    except requests.exceptions.RequestException as e:
        logger.warning(f"Identity provider request failed: {e}")
        return None

    if resp.status_code != 200:
        logger.info(f"Identity provider rejected token ({resp.status_code})")
        return None

    try:
        data = resp.json()
    except ValueError:
        logger.warning("Identity provider returned a non-JSON body")
        return None

    user_id = data.get("id")
    if not user_id:
        return None
    return AuthenticatedUser(id=user_id, email=data.get("email"))
