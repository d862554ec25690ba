"""Ledger service — the only code allowed to change an account balance.

Responsible for:
- Provisioning accounts with the free starting balance
- debit_credit: one credit per successful generation, atomic, never below zero
- grant_credit: purchased credits, atomic and idempotent on the payment id
- Operator grants and reconciliation flags

Every mutation is a single conditional UPDATE plus a ledger row, committed
together. Callers never read-then-write the balance themselves; the
UPDATE's WHERE clause is the serialization point between concurrent
requests for the same account.
"""

import logging

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.errors import AccountNotFoundError, InsufficientCreditsError, LedgerError
from app.extensions import db
from app.models.account import Account
from app.models.audit import AuditEvent
from app.models.credit_transaction import CreditTransaction

logger = logging.getLogger(__name__)

# grant_credit outcomes
GRANTED = "granted"
DUPLICATE = "duplicate"


# ──────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────

def get_account(account_id):
    """Return the Account or None. Advisory only; never debit from this."""
    return db.session.get(Account, account_id)


def _current_balance(account_id):
    return db.session.execute(
        select(Account.credits).where(Account.id == account_id)
    ).scalar_one()


# ──────────────────────────────────────────────
# Provisioning
# ──────────────────────────────────────────────

def provision_account(account_id, email=None, starting_credits=None):
    """Get or create the account for an authenticated user.

    New accounts start with FREE_STARTING_CREDITS and a matching
    signup_bonus ledger row. Safe to call on every authenticated visit.
    """
    account = db.session.get(Account, account_id)
    if account is not None:
        return account

    if starting_credits is None:
        starting_credits = current_app.config["FREE_STARTING_CREDITS"]

    account = Account(
        id=account_id,
        email=email,
        credits=starting_credits,
        total_generated=0,
    )
    db.session.add(account)
    if starting_credits > 0:
        db.session.add(CreditTransaction(
            account_id=account_id,
            amount=starting_credits,
            transaction_type="signup_bonus",
            reason="Free starting credits",
        ))

    try:
        db.session.commit()
    except IntegrityError:
        # Two first requests raced; the other one created the row.
        db.session.rollback()
        account = db.session.get(Account, account_id)
        if account is None:
            raise LedgerError(f"Could not provision account {account_id}")
        return account
    except SQLAlchemyError as e:
        db.session.rollback()
        raise LedgerError(f"Could not provision account {account_id}: {e}") from e

    logger.info(f"Provisioned account {account_id} with {starting_credits} free credits")
    return account


# ──────────────────────────────────────────────
# Debit
# ──────────────────────────────────────────────

def debit_credit(account_id, reason):
    """Atomically take one credit and count one generation.

    Returns the new balance, read inside the same transaction.
    Raises InsufficientCreditsError if the balance is below one,
    AccountNotFoundError if there is no account, LedgerError on any
    store failure. On every error nothing has been written.
    """
    try:
        result = db.session.execute(
            update(Account)
            .where(Account.id == account_id, Account.credits >= 1)
            .values(
                credits=Account.credits - 1,
                total_generated=Account.total_generated + 1,
            )
            .execution_options(synchronize_session=False)
        )
        matched = result.rowcount == 1

        if matched:
            db.session.add(CreditTransaction(
                account_id=account_id,
                amount=-1,
                transaction_type="debit",
                reason=reason,
            ))
            new_balance = _current_balance(account_id)
            db.session.commit()
        else:
            db.session.rollback()
            exists = db.session.get(Account, account_id) is not None
    except SQLAlchemyError as e:
        db.session.rollback()
        raise LedgerError(f"Debit failed for account {account_id}: {e}") from e

    if not matched:
        if not exists:
            raise AccountNotFoundError(f"No account {account_id}")
        raise InsufficientCreditsError(f"Account {account_id} has no credits left")

    logger.info(f"Debited 1 credit from {account_id} ({reason}), balance now {new_balance}")
    return new_balance


# ──────────────────────────────────────────────
# Grants
# ──────────────────────────────────────────────

def _validate_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Credit amount must be a positive integer, got {amount!r}")


def grant_credit(account_id, amount, payment_id, package_name=None):
    """Atomically add purchased credits, once per payment id.

    Returns GRANTED, or DUPLICATE if this payment id was already recorded
    (balance untouched). Raises AccountNotFoundError / LedgerError on
    store failure so the caller can ask the sender to retry.
    """
    _validate_amount(amount)
    if not payment_id:
        raise ValueError("payment_id is required for an idempotent grant")

    try:
        existing = CreditTransaction.query.filter_by(
            stripe_payment_id=payment_id
        ).first()
        if existing:
            logger.info(f"Payment {payment_id} already granted, skipping")
            return DUPLICATE

        db.session.add(CreditTransaction(
            account_id=account_id,
            amount=amount,
            transaction_type="purchase",
            reason="Credit purchase",
            package_name=package_name,
            stripe_payment_id=payment_id,
        ))
        # Unique constraint on stripe_payment_id fires here on a concurrent
        # delivery of the same payment.
        db.session.flush()

        result = db.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(credits=Account.credits + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise AccountNotFoundError(f"No account {account_id} for payment {payment_id}")

        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if CreditTransaction.query.filter_by(stripe_payment_id=payment_id).first():
            logger.info(f"Payment {payment_id} granted by a concurrent delivery")
            return DUPLICATE
        if db.session.get(Account, account_id) is None:
            raise AccountNotFoundError(f"No account {account_id} for payment {payment_id}") from e
        raise LedgerError(f"Grant failed for payment {payment_id}: {e}") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        raise LedgerError(f"Grant failed for payment {payment_id}: {e}") from e

    logger.info(f"Granted {amount} credits to {account_id} for payment {payment_id}")
    return GRANTED


def admin_grant(account_id, amount, note=None):
    """Operator grant with no payment behind it. Returns the new balance."""
    _validate_amount(amount)
    try:
        result = db.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(credits=Account.credits + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise AccountNotFoundError(f"No account {account_id}")

        db.session.add(CreditTransaction(
            account_id=account_id,
            amount=amount,
            transaction_type="admin_grant",
            reason=note or "Operator grant",
        ))
        new_balance = _current_balance(account_id)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise LedgerError(f"Admin grant failed for account {account_id}: {e}") from e

    logger.info(f"Admin granted {amount} credits to {account_id}")
    return new_balance


# ──────────────────────────────────────────────
# Reconciliation flags
# ──────────────────────────────────────────────

def flag_for_reconciliation(account_id, action, metadata=None):
    """Record a ledger incident for an operator.

    Best effort: the store may be the thing that is down, so a failure
    here is logged and swallowed. The ERROR log line written by the
    caller remains the primary record.
    """
    try:
        db.session.add(AuditEvent(
            account_id=account_id,
            action=action,
            metadata_=metadata or {},
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(
            f"Could not record {action} for account {account_id}: {e}"
        )
        return False
    return True


def list_open_incidents(action=None):
    """Unresolved audit events, oldest first."""
    query = AuditEvent.query.filter_by(resolved=False)
    if action:
        query = query.filter_by(action=action)
    return query.order_by(AuditEvent.created_at.asc()).all()
