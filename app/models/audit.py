"""Audit event model.

Records ledger incidents that need an operator: a generation that
succeeded but could not be debited, a grant that failed. Listed by
`flask reconciliation-report`.
"""

import uuid

from app.extensions import db


class AuditEvent(db.Model):
    __tablename__ = "audit_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # No FK: the account row may be exactly what is missing.
    account_id = db.Column(db.String(36), nullable=True, index=True)
    action = db.Column(db.String(255), nullable=False)  # e.g. "debit.failed"
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid Python builtin clash
    resolved = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<AuditEvent {self.action}>"
