"""Logging filter that redacts personal and payment data.

Attached to the root handlers outside debug mode (see create_app).
Records logged with extra={"reconciliation": True} pass through
unchanged: they carry the payment id an operator needs to repair a
balance by hand.

    jane.doe@example.com        -> j***@example.com
    pi_3PqRsTuVwXyZ1234         -> pi_****1234
    Authorization: Bearer eyJ.. -> Authorization: Bearer ***REDACTED***
"""

import logging
import re

EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
STRIPE_ID_RE = re.compile(r"\b(pi|cs|ch|cus|py)_([A-Za-z0-9_]+)\b")
BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)


def _redact_stripe_id(match):
    prefix, rest = match.group(1), match.group(2)
    if len(rest) <= 8:
        return f"{prefix}_****"
    return f"{prefix}_****{rest[-4:]}"


def redact(text):
    """Return `text` with emails, Stripe ids and bearer tokens masked."""
    text = BEARER_RE.sub(r"\1***REDACTED***", text)
    text = EMAIL_RE.sub(r"\1***@\2", text)
    text = STRIPE_ID_RE.sub(_redact_stripe_id, text)
    return text


class SensitiveDataFilter(logging.Filter):
    """Rewrites each record's message in place; never drops records."""

    def filter(self, record):
        if getattr(record, "reconciliation", False):
            return True
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = redact(message)
        record.args = None
        return True


def install(logger=None):
    """Attach one SensitiveDataFilter to each handler of `logger` (root by default).

    Safe to call on every create_app: handlers that already carry the
    filter are skipped.
    """
    logger = logger or logging.getLogger()
    for handler in logger.handlers:
        if not any(isinstance(f, SensitiveDataFilter) for f in handler.filters):
            handler.addFilter(SensitiveDataFilter())
