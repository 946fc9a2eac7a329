"""ORM models."""

from payout_engine.models.base import Base, TimestampMixin, UpdatedAtMixin, utcnow
from payout_engine.models.payment import Payment, Transaction
from payout_engine.models.vendor import BankAccount, Vendor
from payout_engine.models.webhook import WebhookEvent

__all__ = [
    "Base",
    "TimestampMixin",
    "UpdatedAtMixin",
    "utcnow",
    "Payment",
    "Transaction",
    "BankAccount",
    "Vendor",
    "WebhookEvent",
]
