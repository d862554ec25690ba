"""Account model.

One row per authenticated user, keyed by the identity provider's user id.
`credits` is only ever changed by ledger_service.debit_credit /
grant_credit / provision_account, never by direct assignment from a
request handler.
"""

from app.extensions import db


class Account(db.Model):
    __tablename__ = "accounts"
    __table_args__ = (
        db.CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),
        db.CheckConstraint(
            "total_generated >= 0", name="ck_accounts_total_generated_non_negative"
        ),
    )

    # Identity provider user id (immutable)
    id = db.Column(db.String(36), primary_key=True)
    email = db.Column(db.String(255), nullable=True)
    credits = db.Column(db.Integer, nullable=False, default=0)
    total_generated = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    transactions = db.relationship(
        "CreditTransaction", back_populates="account", lazy="dynamic"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "credits": self.credits,
            "total_generated": self.total_generated,
        }

    def __repr__(self):
        return f"<Account {self.id} credits={self.credits}>"
