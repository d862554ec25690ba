"""Domain exceptions shared by services and blueprints.

Services raise these; blueprints translate them to HTTP responses.

- LedgerError: the debit/grant store call itself failed (consistency).
- ProviderError: the generation provider did not return a usable image.
- WebhookPayloadError: a verified webhook carried unusable metadata.
"""


class LedgerError(Exception):
    """A ledger mutation failed (store unreachable, constraint error, ...)."""


class AccountNotFoundError(LedgerError):
    """No account row exists for the given id."""


class InsufficientCreditsError(LedgerError):
    """The conditional debit matched no row: balance is below one credit."""


class ProviderError(Exception):
    """Base class for generation provider failures. Never followed by a debit."""


class ProviderAtCapacityError(ProviderError):
    """Quota, rate limit, or timeout on the provider side. Retriable."""

    def __init__(self, message, retry_after=60):
        super().__init__(message)
        self.retry_after = retry_after


class GenerationRejectedError(ProviderError):
    """Provider refused the request or answered without an image."""

    def __init__(self, reason, message=None):
        super().__init__(message or reason)
        self.reason = reason


class GenerationFailedError(ProviderError):
    """Any other provider failure (transport error, unexpected status)."""


class WebhookPayloadError(ValueError):
    """Webhook metadata is missing or invalid (-> 400, no grant)."""
