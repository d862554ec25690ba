"""Health blueprint — /api/health (unauthenticated, no DB access)."""

from flask import Blueprint, current_app, jsonify

from app.extensions import limiter

health_bp = Blueprint("health", __name__, url_prefix="/api")


@health_bp.route("/health")
@limiter.exempt
def health():
    return jsonify({
        "status": "ok",
        "message": "Morpheo API is running",
        "apiKeyConfigured": "Yes" if current_app.config.get("GOOGLE_API_KEY") else "No",
    })
