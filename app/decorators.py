"""
Custom route decorators for the JSON API.

- account_required: caller has a valid bearer token (401 otherwise) AND a
  ledger account (404 otherwise). Sets g.account for the view.

Missing accounts are a provisioning failure upstream, not a user error,
so they get their own status instead of being created on the fly.
"""

from functools import wraps

from flask import g, jsonify
from flask_login import current_user, login_required

from app.services import ledger_service


def account_required(f):
    """Require login + an existing account row."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        account = ledger_service.get_account(current_user.id)
        if account is None:
            return jsonify({
                "error": "Profile not found",
                "message": "Your account is not set up yet. Please sign in again.",
            }), 404

        g.account = account
        return f(*args, **kwargs)

    return decorated
