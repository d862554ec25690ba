"""Account blueprint — /api/me

First authenticated call provisions the ledger account with the free
starting balance. The generation endpoint never provisions: a missing
account there is reported as 404.
"""

import logging

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from app.errors import LedgerError
from app.services import ledger_service

logger = logging.getLogger(__name__)

account_bp = Blueprint("account", __name__, url_prefix="/api")


@account_bp.route("/me")
@login_required
def me():
    """Return the caller's account, creating it on first visit."""
    try:
        account = ledger_service.provision_account(
            current_user.id, email=current_user.email
        )
    except LedgerError as e:
        logger.error(f"Account provisioning failed for {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to load profile"}), 500

    return jsonify(account.to_dict())
