"""Input validation and idempotency key helpers."""

from __future__ import annotations

import re
import uuid
from decimal import Decimal, InvalidOperation

from payout_engine.errors import ValidationError
from payout_engine.services.rates import AMOUNT_QUANTUM

IDEMPOTENCY_KEY_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{8,17}$")
ROUTING_NUMBER_PATTERN = re.compile(r"^\d{9}$")


def generate_idempotency_key() -> str:
    """Fresh random idempotency key (UUID v4)."""
    return str(uuid.uuid4())


def is_valid_idempotency_key(key: str) -> bool:
    return bool(IDEMPOTENCY_KEY_PATTERN.match(key))


def validate_idempotency_key(key: str | None) -> str:
    """Return the supplied key, or a generated one when none was given.

    Raises:
        ValidationError: If a key was supplied but is not a UUID v4
    """
    if key is None:
        return generate_idempotency_key()
    if not is_valid_idempotency_key(key):
        raise ValidationError("Idempotency key must be a valid UUID v4")
    return key


def validate_amount(amount: Decimal, ceiling: Decimal) -> Decimal:
    """Check 0 < amount <= ceiling, at no more than storage precision.

    Raises:
        ValidationError: If the amount is not a finite number in range, or
            has more than six decimal places
    """
    try:
        amount = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError("Amount must be a number") from e
    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number")
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    if amount > ceiling:
        raise ValidationError(f"Amount must not exceed {ceiling}")
    if amount != amount.quantize(AMOUNT_QUANTUM):
        raise ValidationError("Amount must have at most 6 decimal places")
    return amount


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def is_valid_bank_account(account_number: str, routing_number: str) -> bool:
    """US bank details: 8-17 digit account number, 9 digit routing number."""
    return bool(
        ACCOUNT_NUMBER_PATTERN.match(account_number)
        and ROUTING_NUMBER_PATTERN.match(routing_number)
    )


def sanitize_string(value: str) -> str:
    """Trim whitespace and drop angle brackets."""
    return value.strip().replace("<", "").replace(">", "")
