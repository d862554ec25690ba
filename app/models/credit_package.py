"""Credit package model.

Purchasable bundles shown in the paywall. `stripe_price_id` must match a
one-time price in the Stripe dashboard; checkout only accepts price ids
of active packages.
"""

import uuid

from app.extensions import db


# Seeded by `flask seed-packages`.
DEFAULT_CREDIT_PACKAGES = [
    {
        "name": "Starter",
        "emoji": "💫",
        "credits": 10,
        "price_cents": 299,
        "currency": "EUR",
        "stripe_price_id": "price_1SS4E8K9cHL77TyOtdNpKgCr",
        "display_order": 1,
    },
    {
        "name": "Creator",
        "emoji": "🎨",
        "credits": 30,
        "price_cents": 699,
        "currency": "EUR",
        "stripe_price_id": "price_1SS4FjK9cHL77TyOJNL1mVLc",
        "display_order": 2,
    },
    {
        "name": "Pro",
        "emoji": "🏆",
        "credits": 100,
        "price_cents": 1799,
        "currency": "EUR",
        "stripe_price_id": "price_1SS4EtK9cHL77TyOS3mtMaHi",
        "display_order": 3,
    },
]


class CreditPackage(db.Model):
    __tablename__ = "credit_packages"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(100), nullable=False)
    emoji = db.Column(db.String(16), nullable=True)
    credits = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="EUR")
    stripe_price_id = db.Column(db.String(255), unique=True, nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "emoji": self.emoji,
            "credits": self.credits,
            "price_cents": self.price_cents,
            "currency": self.currency,
            "stripe_price_id": self.stripe_price_id,
            "display_order": self.display_order,
        }

    def __repr__(self):
        return f"<CreditPackage {self.name} ({self.credits} credits)>"
