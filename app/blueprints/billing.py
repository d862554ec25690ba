"""Billing blueprint — /api/credit-packages, /api/checkout

Routes:
- GET  /api/credit-packages  — active packages for the paywall
- POST /api/checkout         — create a Checkout Session for one package

Credits are never granted here. The webhook grants them once Stripe
confirms the payment.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from app.decorators import account_required
from app.extensions import limiter
from app.models.credit_package import CreditPackage
from app.services.stripe_service import create_checkout_session

logger = logging.getLogger(__name__)

billing_bp = Blueprint("billing", __name__, url_prefix="/api")


def _packages_rate_limit():
    return current_app.config["PACKAGES_RATE_LIMIT"]


def _checkout_rate_limit():
    return current_app.config["CHECKOUT_RATE_LIMIT"]


# ──────────────────────────────────────────────
# GET /api/credit-packages
# ──────────────────────────────────────────────

@billing_bp.route("/credit-packages")
@limiter.limit(_packages_rate_limit)
def credit_packages():
    """Active credit packages ordered by display_order."""
    packages = (
        CreditPackage.query
        .filter_by(active=True)
        .order_by(CreditPackage.display_order.asc())
        .all()
    )
    return jsonify({"packages": [p.to_dict() for p in packages]})


# ──────────────────────────────────────────────
# POST /api/checkout
# ──────────────────────────────────────────────

@billing_bp.route("/checkout", methods=["POST"])
@limiter.limit(_checkout_rate_limit)
@account_required
def checkout():
    """Create a Stripe Checkout Session and return its URL.

    Body: {"priceId": "price_..."}. Must belong to an active package,
    so a client can't buy an arbitrary Stripe price with our metadata.
    """
    data = request.get_json(silent=True) or {}
    price_id = data.get("priceId")

    if not price_id:
        return jsonify({"error": "Missing priceId parameter"}), 400

    package = CreditPackage.query.filter_by(
        stripe_price_id=price_id, active=True
    ).first()
    if package is None:
        logger.warning(f"Checkout with unknown price id: {price_id}")
        return jsonify({"error": "Invalid price ID"}), 400

    try:
        url = create_checkout_session(
            account_id=current_user.id,
            email=current_user.email,
            package=package,
        )
    except Exception as e:
        logger.error(f"Checkout error: {e}", exc_info=True)
        return jsonify({"error": "Failed to create checkout session"}), 500

    return jsonify({"url": url})
