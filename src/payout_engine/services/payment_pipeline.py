"""Payment settlement pipeline.

Drives one payment from PENDING to COMPLETED:

    PAYMENT_IN -> EXCHANGE_TO_STABLECOIN -> EXCHANGE_TO_FIAT -> PAYOUT

Each step calls the settlement provider outside any database transaction,
then records its result in a short unit of work that first re-checks the
payment is still PROCESSING. A webhook that fails the payment mid-flight
therefore stops the pipeline at the next step instead of being overwritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from payout_engine.errors import PaymentNotFound, UpstreamError
from payout_engine.models import utcnow
from payout_engine.services.ledger_store import LedgerStore
from payout_engine.services.rates import quantize_amount
from payout_engine.services.state_machine import (
    PaymentStatus,
    TransactionStatus,
    TransactionType,
)

if TYPE_CHECKING:
    from payout_engine.config import Settings
    from payout_engine.database import Database
    from payout_engine.providers.base import SettlementProvider
    from payout_engine.services.rates import RateProvider

logger = logging.getLogger(__name__)


class PipelineAborted(Exception):
    """Payment left PROCESSING while its pipeline was running."""

    def __init__(self, payment_id: UUID, status: str | None):
        self.payment_id = payment_id
        self.status = status
        super().__init__(f"Payment {payment_id} is {status}, pipeline stopped")


@dataclass(frozen=True)
class _PaymentContext:
    """What the pipeline needs from the payment row, read once up front."""

    payment_id: UUID
    idempotency_key: str
    source_amount: Decimal
    source_currency: str
    destination_currency: str
    destination: dict[str, Any]


@dataclass(frozen=True)
class StepAmounts:
    """Gross amount, fee and net amount of one conversion step."""

    gross: Decimal
    fee: Decimal

    @property
    def net(self) -> Decimal:
        return self.gross - self.fee


def apply_fee(gross: Decimal, fee_rate: Decimal) -> StepAmounts:
    """Split a step's gross amount into fee and net, fee proportional to gross."""
    gross = quantize_amount(gross)
    return StepAmounts(gross=gross, fee=quantize_amount(gross * fee_rate))


class PaymentPipeline:
    """Runs the settlement steps of a single payment."""

    def __init__(
        self,
        database: Database,
        provider: SettlementProvider,
        rates: RateProvider,
        settings: Settings,
    ):
        self.database = database
        self.provider = provider
        self.rates = rates
        self.settings = settings

    async def process(self, payment_id: UUID) -> None:
        """Run every step for payment_id.

        Raises:
            PipelineAborted: If the payment is not (or no longer) PROCESSING
            UpstreamError: If the provider rejects a step
        """
        ctx = await self._start(payment_id)
        stablecoin = self.settings.stablecoin_currency

        # Incoming funds
        intent_id = await self._receive_funds(ctx)

        # Source currency -> stablecoin
        await self._checkpoint(payment_id)
        rate = self.rates.rate(ctx.source_currency, stablecoin)
        first = apply_fee(ctx.source_amount * rate, self.settings.exchange_fee_rate)
        await self._exchange(
            ctx,
            TransactionType.EXCHANGE_TO_STABLECOIN,
            amount_in=ctx.source_amount,
            from_currency=ctx.source_currency,
            to_currency=stablecoin,
            rate=rate,
            amounts=first,
        )

        # Stablecoin -> destination currency
        await self._checkpoint(payment_id)
        rate = self.rates.rate(stablecoin, ctx.destination_currency)
        second = apply_fee(first.net * rate, self.settings.exchange_fee_rate)
        await self._exchange(
            ctx,
            TransactionType.EXCHANGE_TO_FIAT,
            amount_in=first.net,
            from_currency=stablecoin,
            to_currency=ctx.destination_currency,
            rate=rate,
            amounts=second,
        )

        # Bank payout
        await self._checkpoint(payment_id)
        payout = StepAmounts(
            gross=second.net,
            fee=quantize_amount(second.net * self.settings.payout_fee_rate),
        )
        await self._payout(ctx, payout)

        async with self.database.session() as session:
            result = await LedgerStore(session).transition_payment(
                payment_id, PaymentStatus.COMPLETED
            )
        if not result:
            raise PipelineAborted(payment_id, result.status)
        logger.info(
            "Payment %s completed (intent %s, delivered %s %s)",
            payment_id,
            intent_id,
            payout.net,
            ctx.destination_currency,
        )

    async def fail(self, payment_id: UUID, reason: str = "") -> bool:
        """Move a payment to FAILED if it is not already terminal.

        Returns True if this call changed the status.
        """
        async with self.database.session() as session:
            result = await LedgerStore(session).transition_payment(
                payment_id, PaymentStatus.FAILED
            )
        if result:
            logger.warning("Payment %s failed: %s", payment_id, reason or "unknown error")
        else:
            logger.info(
                "Payment %s not marked failed, status is %s", payment_id, result.status
            )
        return result.applied

    async def _start(self, payment_id: UUID) -> _PaymentContext:
        async with self.database.session() as session:
            store = LedgerStore(session)
            result = await store.transition_payment(payment_id, PaymentStatus.PROCESSING)
            if not result:
                if result.status is None:
                    raise PaymentNotFound(f"Payment {payment_id} not found")
                raise PipelineAborted(payment_id, result.status)

            payment = await store.get_payment(payment_id, with_details=True)
            bank = payment.vendor.bank_account
            if bank is None:
                raise UpstreamError(f"Vendor {payment.vendor_id} has no bank account")
            ctx = _PaymentContext(
                payment_id=payment.id,
                idempotency_key=payment.idempotency_key,
                source_amount=Decimal(payment.source_amount),
                source_currency=payment.source_currency,
                destination_currency=payment.destination_currency,
                destination={
                    "account_holder": bank.account_holder,
                    "bank_name": bank.bank_name,
                    "routing_number": bank.routing_number,
                    "account_number_last4": bank.account_number[-4:],
                    "country": bank.country,
                    "currency": bank.currency,
                    "provider_account_id": bank.provider_account_id,
                },
            )
        logger.info("Payment %s processing", payment_id)
        return ctx

    async def _checkpoint(self, payment_id: UUID) -> None:
        """Stop unless the payment is still PROCESSING."""
        async with self.database.session() as session:
            await self._require_processing(LedgerStore(session), payment_id)

    @staticmethod
    async def _require_processing(store: LedgerStore, payment_id: UUID) -> None:
        payment = await store.get_payment(payment_id)
        status = payment.status if payment else None
        if status != PaymentStatus.PROCESSING.value:
            raise PipelineAborted(payment_id, status)

    async def _receive_funds(self, ctx: _PaymentContext) -> str:
        intent = await self.provider.create_payment_intent(
            amount=ctx.source_amount,
            currency=ctx.source_currency,
            settlement_currency=self.settings.stablecoin_currency,
            idempotency_key=ctx.idempotency_key,
        )
        if not intent.accepted:
            raise UpstreamError(f"Payment intent rejected: {intent.message}")

        async with self.database.session() as session:
            store = LedgerStore(session)
            await self._require_processing(store, ctx.payment_id)
            await store.update_payment(ctx.payment_id, provider_payment_id=intent.intent_id)
            tx = await store.append_transaction(
                payment_id=ctx.payment_id,
                tx_type=TransactionType.PAYMENT_IN,
                status=TransactionStatus.PENDING,
                amount=ctx.source_amount,
                currency=ctx.source_currency,
                external_id=intent.intent_id,
                metadata={"provider": self.provider.provider_name},
            )
            tx_id = tx.id

        confirmation = await self.provider.await_confirmation(intent.intent_id)
        if not confirmation.confirmed:
            raise UpstreamError(f"Incoming funds not confirmed: {confirmation.message}")

        async with self.database.session() as session:
            store = LedgerStore(session)
            await self._require_processing(store, ctx.payment_id)
            result = await store.transition_transaction(tx_id, TransactionStatus.CONFIRMED)
            # A webhook may have confirmed it first
            if not result and result.status != TransactionStatus.CONFIRMED.value:
                raise PipelineAborted(ctx.payment_id, f"PAYMENT_IN {result.status}")
            if confirmation.proof_hash:
                await store.attach_proof_hash(tx_id, confirmation.proof_hash)
        logger.info("Payment %s funds received (intent %s)", ctx.payment_id, intent.intent_id)
        return intent.intent_id

    async def _exchange(
        self,
        ctx: _PaymentContext,
        tx_type: TransactionType,
        *,
        amount_in: Decimal,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        amounts: StepAmounts,
    ) -> None:
        transfer = await self.provider.exchange(
            amount=amount_in,
            from_currency=from_currency,
            to_currency=to_currency,
            idempotency_key=f"{ctx.idempotency_key}-{tx_type.value.lower()}",
        )
        if not transfer.accepted:
            raise UpstreamError(f"{tx_type.value} rejected: {transfer.message}")

        async with self.database.session() as session:
            store = LedgerStore(session)
            await self._require_processing(store, ctx.payment_id)
            await store.append_transaction(
                payment_id=ctx.payment_id,
                tx_type=tx_type,
                amount=amounts.gross,
                currency=to_currency,
                fee_amount=amounts.fee,
                fee_currency=to_currency,
                external_id=transfer.transfer_id,
                proof_hash=transfer.proof_hash,
                metadata={
                    "from_amount": str(amount_in),
                    "from_currency": from_currency,
                    "rate": str(rate),
                    "net_amount": str(amounts.net),
                },
            )
            if tx_type is TransactionType.EXCHANGE_TO_FIAT:
                await store.update_payment(ctx.payment_id, destination_amount=amounts.net)
        logger.info(
            "Payment %s exchanged %s %s -> %s %s (fee %s)",
            ctx.payment_id,
            amount_in,
            from_currency,
            amounts.gross,
            to_currency,
            amounts.fee,
        )

    async def _payout(self, ctx: _PaymentContext, amounts: StepAmounts) -> None:
        transfer = await self.provider.payout(
            amount=amounts.gross,
            currency=ctx.destination_currency,
            destination=ctx.destination,
            idempotency_key=f"{ctx.idempotency_key}-payout",
        )
        if not transfer.accepted:
            raise UpstreamError(f"Payout rejected: {transfer.message}")

        async with self.database.session() as session:
            store = LedgerStore(session)
            await self._require_processing(store, ctx.payment_id)
            metadata = {"net_amount": str(amounts.net)}
            if transfer.estimated_delivery is not None:
                metadata["estimated_delivery"] = transfer.estimated_delivery.isoformat()
            await store.append_transaction(
                payment_id=ctx.payment_id,
                tx_type=TransactionType.PAYOUT,
                amount=amounts.gross,
                currency=ctx.destination_currency,
                fee_amount=amounts.fee,
                fee_currency=ctx.destination_currency,
                external_id=transfer.transfer_id,
                proof_hash=transfer.proof_hash,
                metadata=metadata,
            )
            await store.update_payment(
                ctx.payment_id,
                destination_amount=amounts.net,
                actual_settlement_time=utcnow(),
            )
        logger.info("Payment %s paid out %s %s", ctx.payment_id, amounts.net, ctx.destination_currency)
