import os
import logging

import click
from flask import Flask, jsonify

from app.config import config_by_name
from app.extensions import db, migrate, login_manager, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from app import models  # noqa: F401

    # --- Register blueprints ---
    from app.blueprints.generate import generate_bp
    from app.blueprints.webhooks import webhooks_bp
    from app.blueprints.billing import billing_bp
    from app.blueprints.account import account_bp
    from app.blueprints.health import health_bp

    app.register_blueprint(generate_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(health_bp)

    # --- Error handlers (JSON everywhere) ---
    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(401)
    def unauthorized(e):
        return jsonify({"error": "Unauthorized"}), 401

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def payload_too_large(e):
        return jsonify({"error": "Image is too large"}), 413

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "Rate limit exceeded", "limit": str(e.description)}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # JSON API: nothing to render, nothing to embed
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Generated images and balances are per-user
        response.headers["Cache-Control"] = "no-store"
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        from app import log_filters

        logging.basicConfig(level=logging.INFO)
        log_filters.install()

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-packages")
    def seed_packages():
        """Create or update the default credit packages.

        Usage:
            flask seed-packages
        """
        from app.models.credit_package import CreditPackage, DEFAULT_CREDIT_PACKAGES

        for defaults in DEFAULT_CREDIT_PACKAGES:
            package = CreditPackage.query.filter_by(name=defaults["name"]).first()
            if package:
                for key, value in defaults.items():
                    setattr(package, key, value)
                click.echo(f"Updated package: {defaults['name']}")
            else:
                db.session.add(CreditPackage(**defaults))
                click.echo(f"Created package: {defaults['name']}")
        db.session.commit()

    @app.cli.command("grant-credits")
    @click.argument("account_id")
    @click.argument("amount", type=int)
    @click.option("--note", default=None, help="Reason recorded on the ledger row")
    def grant_credits(account_id, amount, note):
        """Grant credits to an account by hand (refunds, support).

        Usage:
            flask grant-credits 0b6c...e1 5 --note "refund for failed debit"
        """
        from app.errors import LedgerError
        from app.services import ledger_service

        try:
            balance = ledger_service.admin_grant(account_id, amount, note)
        except (ValueError, LedgerError) as e:
            raise click.ClickException(str(e))
        click.echo(f"Granted {amount} credits to {account_id}. New balance: {balance}")

    @app.cli.command("reconciliation-report")
    @click.option("--resolve", "resolve_id", default=None, help="Mark one incident resolved")
    def reconciliation_report(resolve_id):
        """List ledger incidents (failed debits / grants) awaiting an operator.

        Usage:
            flask reconciliation-report
            flask reconciliation-report --resolve <incident id>
        """
        from app.models.audit import AuditEvent
        from app.services import ledger_service

        if resolve_id:
            incident = db.session.get(AuditEvent, resolve_id)
            if incident is None:
                raise click.ClickException(f"No incident {resolve_id}")
            incident.resolved = True
            db.session.commit()
            click.echo(f"Resolved {resolve_id}")
            return

        incidents = ledger_service.list_open_incidents()
        if not incidents:
            click.echo("No open incidents.")
            return

        click.echo("=" * 60)
        for incident in incidents:
            created = incident.created_at.isoformat() if incident.created_at else "?"
            click.echo(f"  {incident.id}  {created}  {incident.action}")
            click.echo(f"    account: {incident.account_id}")
            for key, value in (incident.metadata_ or {}).items():
                click.echo(f"    {key}: {value}")
        click.echo("=" * 60)
        click.echo(f"{len(incidents)} open incident(s)")
