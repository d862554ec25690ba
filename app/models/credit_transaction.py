"""Credit transaction model (append-only ledger).

One row per debit or grant. `stripe_payment_id` is unique: a second grant
for the same payment intent fails the constraint and is reported as a
duplicate instead of being applied.
"""

import uuid

from app.extensions import db


class CreditTransaction(db.Model):
    __tablename__ = "credit_transactions"

    # -- Valid transaction types --
    TYPES = [
        "debit",         # one successful generation
        "purchase",      # Stripe checkout completed
        "signup_bonus",  # free starting balance
        "admin_grant",   # operator CLI
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    account_id = db.Column(
        db.String(36), db.ForeignKey("accounts.id"), nullable=False, index=True
    )
    amount = db.Column(db.Integer, nullable=False)  # negative for debits
    transaction_type = db.Column(db.String(50), nullable=False)
    reason = db.Column(db.String(255), nullable=True)  # style used, or a note
    package_name = db.Column(db.String(100), nullable=True)
    stripe_payment_id = db.Column(
        db.String(255), unique=True, nullable=True
    )  # e.g. "pi_3Abc...", idempotency key for purchases
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    account = db.relationship("Account", back_populates="transactions")

    def __repr__(self):
        return f"<CreditTransaction {self.transaction_type} {self.amount:+d}>"
