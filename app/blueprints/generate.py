"""Generation blueprint — /api/generate

Photo + style in, stylized image out, one credit per delivered image.

Order of operations (each step has no side effects if it fails):
1. Authenticate (bearer token)                       -> 401
2. Account exists / advisory balance check            -> 404 / 402
3. Validate image + style                             -> 400
4. Call the generation provider                       -> 503 / 500, no debit
5. Debit one credit, atomically, only after success   -> 402 / 500, image withheld
6. Return image + the balance the debit produced

The balance check in step 2 only saves a pointless provider call. The
debit in step 5 is the real gate: if two requests race past step 2 on
the last credit, exactly one debit matches and the other gets 402.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request
from flask_login import current_user

from app.decorators import account_required
from app.errors import (
    GenerationRejectedError,
    InsufficientCreditsError,
    ProviderAtCapacityError,
    ProviderError,
)
from app.extensions import db, limiter
from app.services import generation_service, ledger_service
from app.styles import is_known_style

logger = logging.getLogger(__name__)

generate_bp = Blueprint("generate", __name__, url_prefix="/api")


def _generate_rate_limit():
    return current_app.config["GENERATE_RATE_LIMIT"]


def _insufficient_credits():
    return jsonify({
        "error": "Insufficient credits",
        "needsCredits": True,
        "message": "You need credits to generate images. Please purchase more credits to continue.",
    }), 402


# ──────────────────────────────────────────────
# POST /api/generate
# ──────────────────────────────────────────────

@generate_bp.route("/generate", methods=["POST"])
@generate_bp.route("/generate-headshot", methods=["POST"])
@limiter.limit(_generate_rate_limit)
@account_required
def generate():
    """Generate a stylized image and charge one credit for it.

    Body: {"image": "<data URI or base64>", "style": "<FILTERS entry>"}
    200:  {"success": true, "image": "data:image/png;base64,...", "credits": n}
    """
    account_id = current_user.id

    # --- Advisory balance check ---
    if g.account.credits < 1:
        logger.info(f"Generation blocked, no credits: account={account_id}")
        return _insufficient_credits()

    # --- Validate payload ---
    data = request.get_json(silent=True) or {}
    image = data.get("image")
    style = data.get("style")

    if not image or not style or not isinstance(image, str):
        return jsonify({"error": "Missing image or style parameter"}), 400
    if not is_known_style(style):
        return jsonify({"error": f"Unknown style: {style}"}), 400

    # End the read transaction so no connection is held during the provider call.
    db.session.rollback()

    # --- Call provider (no debit on any failure) ---
    try:
        generated = generation_service.generate_image(image, style)
    except ProviderAtCapacityError as e:
        return jsonify({
            "error": "The image service is busy right now. Please try again shortly.",
            "retryAfter": e.retry_after,
            "charged": False,
        }), 503, {"Retry-After": str(e.retry_after)}
    except GenerationRejectedError as e:
        logger.info(f"Generation rejected ({e.reason}) for account={account_id} style={style}")
        return jsonify({
            "error": str(e),
            "reason": e.reason,
            "charged": False,
        }), 500
    except ProviderError as e:
        logger.error(f"Generation failed for account={account_id} style={style}: {e}")
        return jsonify({
            "error": "Failed to generate image. You were not charged.",
            "charged": False,
        }), 500

    # --- Debit, only after success ---
    try:
        new_balance = ledger_service.debit_credit(account_id, style)
    except InsufficientCreditsError:
        # Another request spent the last credit while this one was generating.
        logger.warning(
            f"Generated image withheld, balance spent concurrently: account={account_id}"
        )
        return _insufficient_credits()
    except Exception as e:
        # Fail closed: the image is not returned without a recorded debit.
        logger.error(
            f"DEBIT FAILED after successful generation, needs reconciliation: "
            f"account={account_id} style={style}: {e}",
            exc_info=True,
            extra={"reconciliation": True},
        )
        ledger_service.flag_for_reconciliation(account_id, "debit.failed", {
            "style": style,
            "error": str(e),
        })
        return jsonify({
            "error": "Something went wrong saving your image. Your credit was not deducted.",
            "charged": False,
        }), 500

    return jsonify({
        "success": True,
        "image": generation_service.to_data_uri(generated),
        "style": style,
        "credits": new_balance,
    }), 200
