"""Tests for the billing and account blueprints.

Covers:
- GET /api/credit-packages (active only, display order)
- POST /api/checkout (validation, Stripe session metadata, failures)
- GET /api/me (provisioning with the free starting balance)
"""

from unittest.mock import MagicMock, patch

from app.errors import LedgerError
from app.models.credit_transaction import CreditTransaction
from tests.conftest import USER_EMAIL, USER_ID, balance_of


class TestCreditPackages:

    def test_lists_active_packages_in_order(self, client, packages):
        resp = client.get("/api/credit-packages")

        assert resp.status_code == 200
        names = [p["name"] for p in resp.get_json()["packages"]]
        assert names == ["Starter", "Pro"]

    def test_package_fields(self, client, packages):
        starter = client.get("/api/credit-packages").get_json()["packages"][0]

        assert starter["credits"] == 10
        assert starter["price_cents"] == 299
        assert starter["currency"] == "EUR"
        assert starter["stripe_price_id"] == "price_starter_test"

    def test_no_auth_required(self, client):
        resp = client.get("/api/credit-packages")
        assert resp.status_code == 200
        assert resp.get_json() == {"packages": []}


class TestCheckout:

    def test_requires_auth(self, client, packages):
        resp = client.post("/api/checkout", json={"priceId": "price_starter_test"})
        assert resp.status_code == 401

    def test_missing_price_id_returns_400(self, client, account, auth_headers):
        resp = client.post("/api/checkout", json={}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Missing priceId parameter"

    @patch("app.services.stripe_service.stripe.checkout.Session.create")
    def test_unknown_price_id_returns_400(self, mock_create, client, account, auth_headers, packages):
        resp = client.post("/api/checkout", json={"priceId": "price_attacker"}, headers=auth_headers)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid price ID"
        mock_create.assert_not_called()

    @patch("app.services.stripe_service.stripe.checkout.Session.create")
    def test_inactive_package_returns_400(self, mock_create, client, account, auth_headers, packages):
        resp = client.post("/api/checkout", json={"priceId": "price_legacy_test"}, headers=auth_headers)

        assert resp.status_code == 400
        mock_create.assert_not_called()

    @patch("app.services.stripe_service.stripe.checkout.Session.create")
    def test_creates_session_with_grant_metadata(self, mock_create, client, account, auth_headers, packages, app):
        mock_create.return_value = MagicMock(
            id="cs_test_123", url="https://checkout.stripe.com/c/pay/cs_test_123"
        )

        resp = client.post("/api/checkout", json={"priceId": "price_pro_test"}, headers=auth_headers)

        assert resp.status_code == 200
        assert resp.get_json() == {"url": "https://checkout.stripe.com/c/pay/cs_test_123"}

        kwargs = mock_create.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"] == [{"price": "price_pro_test", "quantity": 1}]
        assert kwargs["client_reference_id"] == USER_ID
        assert kwargs["metadata"] == {
            "account_id": USER_ID,
            "user_email": USER_EMAIL,
            "package_name": "Pro",
            "credits": "100",
        }
        # Checkout itself never grants.
        assert balance_of(app) == (3, 0)

    @patch("app.services.stripe_service.stripe.checkout.Session.create")
    def test_stripe_failure_returns_500(self, mock_create, client, account, auth_headers, packages):
        mock_create.side_effect = Exception("Stripe API down")

        resp = client.post("/api/checkout", json={"priceId": "price_starter_test"}, headers=auth_headers)

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Failed to create checkout session"


class TestMe:

    def test_first_visit_provisions_free_credits(self, client, auth_headers, app):
        resp = client.get("/api/me", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.get_json() == {
            "id": USER_ID,
            "email": USER_EMAIL,
            "credits": 3,
            "total_generated": 0,
        }
        with app.app_context():
            assert CreditTransaction.query.filter_by(transaction_type="signup_bonus").count() == 1

    def test_repeat_visit_does_not_regrant(self, client, auth_headers, app):
        client.get("/api/me", headers=auth_headers)
        client.get("/api/me", headers=auth_headers)

        assert balance_of(app) == (3, 0)
        with app.app_context():
            assert CreditTransaction.query.count() == 1

    def test_existing_balance_reported(self, client, make_account, auth_headers):
        make_account(credits=41, total_generated=7)

        body = client.get("/api/me", headers=auth_headers).get_json()

        assert body["credits"] == 41
        assert body["total_generated"] == 7

    @patch("app.services.ledger_service.provision_account")
    def test_store_failure_returns_500(self, mock_provision, client, auth_headers):
        mock_provision.side_effect = LedgerError("db gone")

        resp = client.get("/api/me", headers=auth_headers)

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Failed to load profile"

    def test_requires_auth(self, client):
        assert client.get("/api/me").status_code == 401
