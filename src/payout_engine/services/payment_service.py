"""Payment initiation and status lookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from payout_engine.errors import PaymentNotFound, VendorUnavailable
from payout_engine.models import Payment, Vendor, utcnow
from payout_engine.services.ledger_store import LedgerStore
from payout_engine.services.rates import conversion_rate, quantize_amount, quantize_rate
from payout_engine.services.state_machine import PaymentStatus
from payout_engine.services.validation import validate_amount, validate_idempotency_key
from payout_engine.services.vendor_service import VendorStatus

if TYPE_CHECKING:
    from payout_engine.config import Settings
    from payout_engine.database import Database
    from payout_engine.services.pipeline_runner import PipelineRunner
    from payout_engine.services.rates import RateProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitiationResult:
    """Result of initiate().

    `created` is False when the idempotency key matched an existing payment;
    that payment is returned as stored and no pipeline is scheduled.
    """

    payment: Payment
    created: bool

    @property
    def idempotency_key(self) -> str:
        return self.payment.idempotency_key


@dataclass(frozen=True)
class Quote:
    """Estimated conversion of a source amount along the configured route."""

    source_amount: Decimal
    source_currency: str
    destination_amount: Decimal
    destination_currency: str
    exchange_rate: Decimal


def estimate(rates: RateProvider, settings: Settings, source_amount: Decimal) -> Quote:
    """Estimate the destination amount of source_amount before fees."""
    rate = conversion_rate(
        rates,
        settings.source_currency,
        settings.stablecoin_currency,
        settings.destination_currency,
    )
    return Quote(
        source_amount=source_amount,
        source_currency=settings.source_currency,
        destination_amount=quantize_amount(source_amount * rate),
        destination_currency=settings.destination_currency,
        exchange_rate=quantize_rate(rate),
    )


class PaymentService:
    """Creates payments and reports their settlement progress.

    Constraints:
    - One payment per idempotency key, enforced by a unique constraint
    - Only ACTIVE vendors with a bank account can be paid
    - Settlement runs in the background once the payment is stored
    """

    def __init__(
        self,
        database: Database,
        rates: RateProvider,
        settings: Settings,
        runner: PipelineRunner | None = None,
    ):
        self.database = database
        self.rates = rates
        self.settings = settings
        self.runner = runner

    def quote(self, source_amount: Decimal) -> Quote:
        return estimate(self.rates, self.settings, source_amount)

    async def initiate(
        self,
        *,
        vendor_id: UUID,
        source_amount: Decimal,
        customer_reference: str | None = None,
        description: str | None = None,
        idempotency_key: str | None = None,
    ) -> InitiationResult:
        """Create a payment, or return the one already stored for the key.

        Args:
            vendor_id: Vendor to pay
            source_amount: Amount in the source currency
            customer_reference: Optional caller reference
            description: Optional free text
            idempotency_key: Optional UUID v4; generated when absent

        Returns:
            InitiationResult with the payment and whether it was created

        Raises:
            ValidationError: If the amount or key is malformed
            VendorUnavailable: If the vendor cannot receive payments
        """
        amount = validate_amount(source_amount, self.settings.max_payment_amount)
        key = validate_idempotency_key(idempotency_key)

        existing = await self._find_by_key(key)
        if existing is not None:
            logger.info("Idempotent replay of payment %s (key %s)", existing.id, key)
            return InitiationResult(payment=existing, created=False)

        quote = self.quote(amount)
        try:
            async with self.database.session() as session:
                await self._require_payable_vendor(session, vendor_id)
                payment = Payment(
                    idempotency_key=key,
                    vendor_id=vendor_id,
                    source_amount=amount,
                    source_currency=quote.source_currency,
                    destination_amount=quote.destination_amount,
                    destination_currency=quote.destination_currency,
                    exchange_rate=quote.exchange_rate,
                    status=PaymentStatus.PENDING.value,
                    customer_reference=customer_reference,
                    description=description,
                    expected_settlement_time=utcnow()
                    + timedelta(minutes=self.settings.settlement_sla_minutes),
                )
                session.add(payment)
                await session.flush()
        except IntegrityError:
            # Lost a race on the idempotency key
            existing = await self._find_by_key(key)
            if existing is None:
                raise
            logger.info("Concurrent initiate for key %s resolved to payment %s", key, existing.id)
            return InitiationResult(payment=existing, created=False)

        logger.info(
            "Payment %s created for vendor %s: %s %s",
            payment.id,
            vendor_id,
            amount,
            quote.source_currency,
        )
        if self.runner is not None:
            self.runner.submit(payment.id)
        return InitiationResult(payment=payment, created=True)

    async def get_status(self, payment_id: str | UUID) -> Payment:
        """Payment with its vendor and settlement steps (oldest first).

        Raises:
            PaymentNotFound: If the id is unknown or not a UUID
        """
        try:
            pid = payment_id if isinstance(payment_id, UUID) else UUID(str(payment_id))
        except ValueError:
            raise PaymentNotFound(f"Payment {payment_id} not found") from None

        async with self.database.session() as session:
            payment = await LedgerStore(session).get_payment(pid, with_details=True)
        if payment is None:
            raise PaymentNotFound(f"Payment {payment_id} not found")
        return payment

    async def _find_by_key(self, key: str) -> Payment | None:
        async with self.database.session() as session:
            return await LedgerStore(session).get_payment_by_idempotency_key(key)

    @staticmethod
    async def _require_payable_vendor(session, vendor_id: UUID) -> Vendor:
        result = await session.execute(
            select(Vendor)
            .where(Vendor.id == vendor_id)
            .options(selectinload(Vendor.bank_account))
        )
        vendor = result.scalar_one_or_none()
        if vendor is None:
            raise VendorUnavailable(f"Vendor {vendor_id} not found")
        if vendor.status != VendorStatus.ACTIVE.value:
            raise VendorUnavailable(f"Vendor {vendor_id} is {vendor.status}")
        if vendor.bank_account is None:
            raise VendorUnavailable(f"Vendor {vendor_id} has no bank account")
        return vendor
