"""Base protocol and types for settlement providers.

All provider adapters must implement the SettlementProvider protocol. The
payment pipeline drives a payment through these calls without knowing which
network or processor sits behind them.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol


@dataclass(frozen=True)
class IntentResult:
    """Result of opening a payment intent for incoming funds."""

    intent_id: str
    accepted: bool
    status: str = "pending"
    message: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConfirmationResult:
    """Outcome of waiting for incoming funds to land."""

    intent_id: str
    confirmed: bool
    proof_hash: str | None = None
    message: str = ""


@dataclass(frozen=True)
class TransferResult:
    """Result of an exchange or payout request."""

    transfer_id: str
    accepted: bool
    status: str = "complete"
    proof_hash: str | None = None
    message: str = ""
    estimated_delivery: datetime.datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class SettlementProvider(Protocol):
    """Protocol for settlement provider adapters."""

    provider_name: str

    async def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str,
        settlement_currency: str,
        idempotency_key: str,
    ) -> IntentResult:
        """Open an intent to receive amount in currency.

        Args:
            amount: Amount the customer pays
            currency: Currency the customer pays in
            settlement_currency: Currency the provider settles into
            idempotency_key: Key making retries of this call safe

        Returns:
            IntentResult with the provider's intent id.
        """
        ...

    async def await_confirmation(self, intent_id: str) -> ConfirmationResult:
        """Wait until the provider reports the intent's funds as received."""
        ...

    async def exchange(
        self,
        *,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        idempotency_key: str,
    ) -> TransferResult:
        """Convert amount of from_currency into to_currency."""
        ...

    async def payout(
        self,
        *,
        amount: Decimal,
        currency: str,
        destination: dict[str, Any],
        idempotency_key: str,
    ) -> TransferResult:
        """Send amount to an external bank destination.

        Args:
            amount: Amount to deliver
            currency: Payout currency
            destination: Bank details (holder, bank name, routing, tokenized account)
            idempotency_key: Key making retries of this call safe

        Returns:
            TransferResult with the provider's payout id.
        """
        ...
