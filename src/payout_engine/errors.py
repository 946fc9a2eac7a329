"""Error taxonomy for the payout engine.

Every error carries a machine-readable ``code`` and the HTTP status it maps
to. Services raise these; the API layer turns them into JSON responses.
"""

from __future__ import annotations


class PayoutEngineError(Exception):
    """Base class for all payout engine errors."""

    code = "PAYOUT_ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class ValidationError(PayoutEngineError):
    """Malformed or out-of-range input."""

    code = "VALIDATION_ERROR"
    status_code = 400


class VendorUnavailable(ValidationError):
    """Vendor not found, not active, or without a bank account."""

    code = "VENDOR_UNAVAILABLE"


class NotFoundError(PayoutEngineError):
    """Requested resource does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class PaymentNotFound(NotFoundError):
    """Payment not found."""

    code = "PAYMENT_NOT_FOUND"


class VendorNotFound(NotFoundError):
    """Vendor not found."""

    code = "VENDOR_NOT_FOUND"


class ConflictError(PayoutEngineError):
    """Unique constraint collision."""

    code = "CONFLICT"
    status_code = 409


class SignatureError(PayoutEngineError):
    """Invalid webhook signature."""

    code = "INVALID_SIGNATURE"
    status_code = 401


class UpstreamError(PayoutEngineError):
    """Settlement provider call failed."""

    code = "UPSTREAM_ERROR"
    status_code = 502


class WebhookProcessingError(PayoutEngineError):
    """Webhook processing failed."""

    code = "WEBHOOK_PROCESSING_FAILED"
    status_code = 500
