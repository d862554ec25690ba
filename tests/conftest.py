"""Shared test fixtures for the Morpheo API test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, limits off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- auth_headers: identity provider faked; "Bearer valid-token" resolves to USER_ID
- make_account / account: ledger accounts with a chosen balance
- fake_response: stand-in for a requests.Response

Requests run in their own app context (none is held open by the
fixtures), so flask-login's per-request user on `g` never leaks between
two requests of the same test. Inspect the DB with `with app.app_context()`.
"""

from unittest.mock import MagicMock, patch

import pytest

from app import create_app
from app.extensions import db as _db
from app.models.account import Account
from app.models.credit_package import CreditPackage
from app.services.identity_service import AuthenticatedUser

USER_ID = "8f14e45f-ceea-4e7a-9c1b-2d5f6a7b8c9d"
USER_EMAIL = "jane@example.com"
VALID_TOKEN = "valid-token"

# Long enough to pass client-side sanity checks; content is irrelevant
# because the provider is always mocked.
SAMPLE_IMAGE = "data:image/jpeg;base64," + "/9j/4AAQSkZJRgABAQAAAQABAAD" * 8
GENERATED_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
    yield _db
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    """An app context for tests that call services directly."""
    with app.app_context():
        yield


@pytest.fixture
def auth_headers():
    """Fake the identity provider and return headers for USER_ID."""

    def _resolve(token):
        if token == VALID_TOKEN:
            return AuthenticatedUser(id=USER_ID, email=USER_EMAIL)
        return None

    with patch(
        "app.services.identity_service.resolve_user", side_effect=_resolve
    ):
        yield {"Authorization": f"Bearer {VALID_TOKEN}"}


@pytest.fixture
def make_account(app):
    """Factory: create an account row and return its id."""

    def _make(account_id=USER_ID, credits=3, total_generated=0, email=USER_EMAIL):
        with app.app_context():
            _db.session.add(Account(
                id=account_id,
                email=email,
                credits=credits,
                total_generated=total_generated,
            ))
            _db.session.commit()
        return account_id

    return _make


@pytest.fixture
def account(make_account):
    """USER_ID with 3 credits."""
    return make_account(credits=3)


@pytest.fixture
def packages(app):
    """Two active packages and one retired one."""
    with app.app_context():
        _db.session.add_all([
            CreditPackage(
                name="Starter", emoji="💫", credits=10, price_cents=299,
                currency="EUR", stripe_price_id="price_starter_test",
                display_order=1,
            ),
            CreditPackage(
                name="Pro", emoji="🏆", credits=100, price_cents=1799,
                currency="EUR", stripe_price_id="price_pro_test",
                display_order=3,
            ),
            CreditPackage(
                name="Legacy", credits=5, price_cents=99, currency="EUR",
                stripe_price_id="price_legacy_test", display_order=2,
                active=False,
            ),
        ])
        _db.session.commit()


def balance_of(app, account_id=USER_ID):
    """(credits, total_generated) for an account, read in a fresh context."""
    with app.app_context():
        account = _db.session.get(Account, account_id)
        return account.credits, account.total_generated


def fake_response(status_code=200, json_body=None, headers=None, text=""):
    """MagicMock shaped like a requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.headers = headers or {}
    resp.text = text
    if json_body is None:
        resp.json.side_effect = ValueError("No JSON")
    else:
        resp.json.return_value = json_body
    return resp


def gemini_image_reply(data=GENERATED_B64, mime_type="image/png"):
    """A successful generateContent body with one inline image."""
    return {
        "candidates": [{
            "content": {"parts": [
                {"text": "Here is your portrait."},
                {"inlineData": {"mimeType": mime_type, "data": data}},
            ]},
            "finishReason": "STOP",
        }],
    }
