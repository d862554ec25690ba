"""Webhooks blueprint — /api/webhooks/stripe

Receives Stripe webhook events. Rate-limit exempt.
Raw body is required for signature verification.

The response code is how we talk to Stripe's retry logic:
- 200: received (including a redelivery of an already-granted payment)
- 400: unverifiable or unusable; retrying will not help
- 500: grant failed; please retry (safe, the grant is idempotent)
"""

import logging

from flask import Blueprint, request, jsonify

from app.errors import WebhookPayloadError
from app.extensions import limiter
from app.services.stripe_service import verify_webhook_signature, handle_webhook_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.route("/stripe", methods=["POST"])
@limiter.exempt
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body (required for signature verification)
    2. Verify signature with STRIPE_WEBHOOK_SECRET
    3. Pass to handle_webhook_event (idempotent via the payment intent id)
    4. Return 200 to acknowledge receipt
    """
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.warning("Webhook received without Stripe-Signature header")
        return jsonify({"error": "Missing signature"}), 400

    # --- Verify signature ---
    try:
        event = verify_webhook_signature(payload, sig_header)
    except Exception as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({"error": "Invalid signature"}), 400

    logger.info(f"Stripe event received: {event['type']}")

    # --- Process event ---
    try:
        success, message = handle_webhook_event(event)
    except WebhookPayloadError as e:
        logger.error(f"Webhook metadata rejected: {e}")
        return jsonify({"error": str(e)}), 400

    if not success:
        logger.error(f"Webhook processing failed: {message}")
        return jsonify({"error": message}), 500

    body = {"received": True, "status": message}
    if message == "duplicate":
        body["message"] = "Duplicate webhook - already processed"
    return jsonify(body), 200
