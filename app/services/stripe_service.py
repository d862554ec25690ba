"""Stripe service — checkout sessions and webhook handling.

Responsible for:
- Creating Stripe Checkout Sessions (one-time credit packages)
- Verifying webhook signatures
- Dispatching webhook events to handlers
- Turning checkout.session.completed into an idempotent credit grant

Idempotency lives in the grant itself (unique payment intent id on the
ledger row), not in a separate processed-events table. Stripe delivers
at least once; a redelivery is answered 200 and changes nothing.
"""

import logging

import stripe
from flask import current_app

from app.errors import WebhookPayloadError
from app.services import ledger_service

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Checkout Sessions
# ──────────────────────────────────────────────

def create_checkout_session(account_id, email, package):
    """Create a Stripe Checkout Session for a credit package.

    The webhook reads account_id / credits / package_name back from the
    session metadata, so everything it needs to grant is set here.

    Returns the Stripe checkout session URL.
    Raises stripe.error.StripeError on API failures.
    """
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    app_base_url = current_app.config["APP_BASE_URL"]

    session = stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        line_items=[{"price": package.stripe_price_id, "quantity": 1}],
        success_url=f"{app_base_url}?payment=success",
        cancel_url=f"{app_base_url}?payment=cancelled",
        client_reference_id=account_id,
        customer_email=email or None,
        metadata={
            "account_id": account_id,
            "user_email": email or "",
            "package_name": package.name,
            "credits": str(package.credits),
        },
    )

    logger.info(f"Checkout session {session.id} created for {account_id}, package {package.name}")
    return session.url


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header):
    """Verify Stripe webhook signature and construct the event.

    Returns the verified Stripe event object.
    Raises stripe.error.SignatureVerificationError on invalid signature.
    """
    webhook_secret = current_app.config["STRIPE_WEBHOOK_SECRET"]
    return stripe.Webhook.construct_event(payload, sig_header, webhook_secret)


def handle_webhook_event(event):
    """Process a verified Stripe webhook event.

    Returns (success: bool, message: str). success=False means "ask
    Stripe to retry". Raises WebhookPayloadError for metadata that can
    never be granted.
    """
    event_type = event["type"]

    handlers = {
        "checkout.session.completed": _handle_checkout_completed,
        "payment_intent.payment_failed": _handle_payment_failed,
    }

    handler = handlers.get(event_type)
    if handler is None:
        logger.info(f"Unhandled Stripe event type: {event_type}")
        return True, "ignored"

    return handler(event)


# ──────────────────────────────────────────────
# Event Handlers
# ──────────────────────────────────────────────

def _field(obj, key):
    """Optional field of a Stripe object (or plain dict); None if absent.

    Stripe objects support `in` and subscript but not dict methods
    such as `.get()`.
    """
    if obj is None or key not in obj:
        return None
    return obj[key]


def parse_checkout_metadata(session):
    """Extract (account_id, credits, package_name) from a checkout session.

    Raises WebhookPayloadError unless account_id is present and credits
    is a positive integer.
    """
    metadata = _field(session, "metadata")

    account_id = _field(metadata, "account_id")
    raw_credits = _field(metadata, "credits")
    package_name = _field(metadata, "package_name")

    if not account_id or raw_credits in (None, ""):
        raise WebhookPayloadError("Missing account_id or credits in metadata")

    try:
        credits = int(str(raw_credits).strip())
    except ValueError:
        raise WebhookPayloadError(f"Invalid credit amount: {raw_credits!r}")

    if credits <= 0:
        raise WebhookPayloadError(f"Invalid credit amount: {credits}")

    return account_id, credits, package_name


def _handle_checkout_completed(event):
    """Handle checkout.session.completed: grant the package's credits.

    The payment intent id is the idempotency key.
    """
    session = event["data"]["object"]
    account_id, credits, package_name = parse_checkout_metadata(session)

    payment_id = _field(session, "payment_intent")
    if not payment_id:
        raise WebhookPayloadError("Missing payment_intent on checkout session")

    logger.info(
        f"Checkout completed: session={_field(session, 'id')} account={account_id} "
        f"credits={credits} payment={payment_id}"
    )

    try:
        outcome = ledger_service.grant_credit(
            account_id, credits, payment_id, package_name
        )
    except Exception as e:
        logger.error(
            f"Failed to grant {credits} credits to {account_id} for payment "
            f"{payment_id}: {e}",
            exc_info=True,
            extra={"reconciliation": True},
        )
        ledger_service.flag_for_reconciliation(account_id, "grant.failed", {
            "payment_id": payment_id,
            "credits": credits,
            "package_name": package_name,
            "event_id": _field(event, "id"),
            "error": str(e),
        })
        return False, "Failed to add credits"

    if outcome == ledger_service.DUPLICATE:
        return True, "duplicate"
    return True, "processed"


def _handle_payment_failed(event):
    """Handle payment_intent.payment_failed: log only, no ledger change.

    The customer sees the failure on the Stripe checkout page.
    """
    intent = event["data"]["object"]
    last_error = _field(intent, "last_payment_error")
    logger.warning(
        f"Payment failed: payment={_field(intent, 'id')} "
        f"reason={_field(last_error, 'message')}"
    )
    return True, "payment_failed_logged"
