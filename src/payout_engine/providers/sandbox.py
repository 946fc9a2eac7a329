"""Sandbox settlement provider for local development and testing.

Replace with a real processor adapter for production.
"""

from __future__ import annotations

import asyncio
import datetime
import secrets
import uuid
from decimal import Decimal
from typing import Any

from payout_engine.errors import UpstreamError
from payout_engine.providers.base import (
    ConfirmationResult,
    IntentResult,
    TransferResult,
)

OPERATIONS = ("payment_intent", "confirmation", "exchange", "payout")


def _synthetic_hash() -> str:
    """Random 32-byte hex string shaped like an on-chain tx hash."""
    return f"0x{secrets.token_hex(32)}"


class SandboxSettlementProvider:
    """Sandbox provider that settles everything it is asked to.

    In production, this would:
    - Create payment intents with the processor's API
    - Receive confirmation through webhooks instead of a timer
    - Execute conversions and wire payouts from a custodial wallet
    """

    provider_name = "sandbox"

    def __init__(self, confirmation_delay: float = 2.0):
        """Initialize sandbox provider.

        Args:
            confirmation_delay: Seconds to wait before reporting incoming
                funds as received. Stands in for real settlement latency.
        """
        self.confirmation_delay = confirmation_delay
        # In-memory tracking for sandbox
        self._submitted: dict[str, dict[str, Any]] = {}
        self._by_key: dict[str, str] = {}
        self._failures: dict[str, str] = {}

    async def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str,
        settlement_currency: str,
        idempotency_key: str,
    ) -> IntentResult:
        """Open a payment intent (sandbox implementation)."""
        self._raise_if_failing("payment_intent")
        intent_key = f"{idempotency_key}-payment-intent"
        existing = self._find_by_key(intent_key)
        if existing is not None:
            return IntentResult(intent_id=existing, accepted=True, raw=self._submitted[existing])

        intent_id = f"pi_{uuid.uuid4().hex[:24]}"
        record = {
            "kind": "payment_intent",
            "idempotency_key": intent_key,
            "amount": str(amount),
            "currency": currency,
            "settlement_currency": settlement_currency,
            "status": "pending",
            "created_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        self._submitted[intent_id] = record
        self._by_key[intent_key] = intent_id
        return IntentResult(intent_id=intent_id, accepted=True, raw=dict(record))

    async def await_confirmation(self, intent_id: str) -> ConfirmationResult:
        """Report incoming funds as received after the configured delay."""
        if intent_id not in self._submitted:
            return ConfirmationResult(
                intent_id=intent_id,
                confirmed=False,
                message=f"Payment intent {intent_id} not found",
            )
        if self.confirmation_delay:
            await asyncio.sleep(self.confirmation_delay)
        self._raise_if_failing("confirmation")

        record = self._submitted[intent_id]
        record["status"] = "confirmed"
        record.setdefault("proof_hash", _synthetic_hash())
        return ConfirmationResult(
            intent_id=intent_id,
            confirmed=True,
            proof_hash=record["proof_hash"],
            message="Sandbox confirmed",
        )

    async def exchange(
        self,
        *,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        idempotency_key: str,
    ) -> TransferResult:
        """Convert between currencies (sandbox implementation)."""
        self._raise_if_failing("exchange")
        transfer_id = f"exchange_{from_currency.lower()}_{to_currency.lower()}_{uuid.uuid4().hex[:16]}"
        return self._record_transfer(
            transfer_id,
            kind="exchange",
            idempotency_key=idempotency_key,
            amount=amount,
            currency=to_currency,
            extra={"from_currency": from_currency},
        )

    async def payout(
        self,
        *,
        amount: Decimal,
        currency: str,
        destination: dict[str, Any],
        idempotency_key: str,
    ) -> TransferResult:
        """Wire funds to a bank destination (sandbox implementation)."""
        self._raise_if_failing("payout")
        payout_id = f"payout_{uuid.uuid4().hex[:24]}"
        return self._record_transfer(
            payout_id,
            kind="payout",
            idempotency_key=idempotency_key,
            amount=amount,
            currency=currency,
            extra={"destination": destination},
            estimated_delivery=datetime.datetime.now(datetime.timezone.utc)
            + datetime.timedelta(days=1),
        )

    def get_status(self, external_id: str) -> str:
        """Status of anything this provider has issued, or 'unknown'."""
        record = self._submitted.get(external_id)
        return record["status"] if record else "unknown"

    def simulate_failure(self, operation: str, message: str = "Sandbox failure") -> None:
        """Make every subsequent call of ``operation`` fail (for testing).

        Operations: payment_intent, confirmation, exchange, payout.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"operation must be one of {OPERATIONS}")
        self._failures[operation] = message

    def clear_failures(self) -> None:
        """Stop simulating failures."""
        self._failures.clear()

    def _raise_if_failing(self, operation: str) -> None:
        if operation in self._failures:
            raise UpstreamError(f"{operation} failed: {self._failures[operation]}")

    def _find_by_key(self, idempotency_key: str) -> str | None:
        return self._by_key.get(idempotency_key)

    def _record_transfer(
        self,
        transfer_id: str,
        *,
        kind: str,
        idempotency_key: str,
        amount: Decimal,
        currency: str,
        extra: dict[str, Any],
        estimated_delivery: datetime.datetime | None = None,
    ) -> TransferResult:
        existing = self._find_by_key(idempotency_key)
        if existing is not None:
            record = self._submitted[existing]
            return TransferResult(
                transfer_id=existing,
                accepted=True,
                proof_hash=record["proof_hash"],
                message=f"Sandbox {kind} replayed",
                raw=dict(record),
            )

        record = {
            "kind": kind,
            "idempotency_key": idempotency_key,
            "amount": str(amount),
            "currency": currency,
            "status": "complete",
            "proof_hash": _synthetic_hash(),
            **extra,
        }
        self._submitted[transfer_id] = record
        self._by_key[idempotency_key] = transfer_id
        return TransferResult(
            transfer_id=transfer_id,
            accepted=True,
            proof_hash=record["proof_hash"],
            message=f"Sandbox {kind} accepted",
            estimated_delivery=estimated_delivery,
            raw=dict(record),
        )
