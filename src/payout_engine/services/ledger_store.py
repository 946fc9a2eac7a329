"""Payment ledger store - guarded status writes and append-only steps.

Every status change is a conditional update: the row only moves if it is
still in a status the state machine allows the move from. Callers check the
returned flag instead of reading first and writing later, so a webhook and
the pipeline racing on the same payment cannot both win.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from payout_engine.models import Payment, Transaction, Vendor, utcnow
from payout_engine.services.state_machine import (
    PaymentStateMachine,
    PaymentStatus,
    TransactionStateMachine,
    TransactionStatus,
    TransactionType,
)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a guarded status write.

    `applied` is False when the row was missing or already past the
    requested status; nothing was written in that case.
    """

    applied: bool
    status: str | None

    def __bool__(self) -> bool:
        return self.applied


class LedgerStore:
    """Reads and guarded writes over payments and their settlement steps."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_payment(
        self,
        payment_id: UUID,
        *,
        with_details: bool = False,
    ) -> Payment | None:
        """Load a payment, optionally with vendor, bank account and steps."""
        stmt = select(Payment).where(Payment.id == payment_id)
        if with_details:
            stmt = stmt.options(
                selectinload(Payment.vendor).selectinload(Vendor.bank_account),
                selectinload(Payment.transactions),
            )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def get_payment_by_idempotency_key(self, idempotency_key: str) -> Payment | None:
        result = await self.session.execute(
            select(Payment).where(Payment.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def find_payment_by_provider_id(self, provider_payment_id: str) -> Payment | None:
        """Payment whose incoming intent carries this provider id."""
        result = await self.session.execute(
            select(Payment).where(Payment.provider_payment_id == provider_payment_id)
        )
        return result.scalars().first()

    async def find_transaction_by_external_id(self, external_id: str) -> Transaction | None:
        """Settlement step the provider knows by external_id."""
        result = await self.session.execute(
            select(Transaction).where(Transaction.external_id == external_id)
        )
        return result.scalars().first()

    async def get_transaction(
        self,
        payment_id: UUID,
        tx_type: TransactionType,
    ) -> Transaction | None:
        result = await self.session.execute(
            select(Transaction).where(
                Transaction.payment_id == payment_id,
                Transaction.type == tx_type.value,
            )
        )
        return result.scalar_one_or_none()

    async def transition_payment(
        self,
        payment_id: UUID,
        to_status: PaymentStatus,
        **values: Any,
    ) -> TransitionResult:
        """Move a payment to to_status if its current status allows it.

        Extra keyword values are written in the same statement.
        """
        sources = [s.value for s in PaymentStateMachine.allowed_sources(to_status)]
        result = await self.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status.in_(sources))
            .values(status=to_status.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return TransitionResult(applied=True, status=to_status.value)
        return TransitionResult(applied=False, status=await self._payment_status(payment_id))

    async def update_payment(
        self,
        payment_id: UUID,
        *,
        require_status: PaymentStatus = PaymentStatus.PROCESSING,
        **values: Any,
    ) -> bool:
        """Write fields on a payment still in require_status."""
        result = await self.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == require_status.value)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def transition_transaction(
        self,
        transaction_id: UUID,
        to_status: TransactionStatus,
        **values: Any,
    ) -> TransitionResult:
        """Move a settlement step to to_status if its current status allows it."""
        sources = [s.value for s in TransactionStateMachine.allowed_sources(to_status)]
        result = await self.session.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status.in_(sources))
            .values(status=to_status.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return TransitionResult(applied=True, status=to_status.value)
        current = await self.session.scalar(
            select(Transaction.status).where(Transaction.id == transaction_id)
        )
        return TransitionResult(applied=False, status=current)

    async def attach_proof_hash(self, transaction_id: UUID, proof_hash: str) -> bool:
        """Record proof of settlement. An existing hash is never overwritten."""
        result = await self.session.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.proof_hash.is_(None))
            .values(proof_hash=proof_hash, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def append_transaction(
        self,
        *,
        payment_id: UUID,
        tx_type: TransactionType,
        amount: Decimal,
        currency: str,
        status: TransactionStatus = TransactionStatus.CONFIRMED,
        fee_amount: Decimal | None = None,
        fee_currency: str | None = None,
        external_id: str | None = None,
        proof_hash: str | None = None,
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> Transaction:
        """Append one settlement step. Steps are never edited except for status."""
        tx = Transaction(
            payment_id=payment_id,
            sequence=tx_type.sequence,
            type=tx_type.value,
            status=status.value,
            amount=amount,
            currency=currency,
            fee_amount=fee_amount,
            fee_currency=fee_currency,
            external_id=external_id,
            proof_hash=proof_hash,
            metadata_json=metadata or {},
            created_at=created_at or utcnow(),
        )
        self.session.add(tx)
        await self.session.flush()
        return tx

    async def _payment_status(self, payment_id: UUID) -> str | None:
        return await self.session.scalar(select(Payment.status).where(Payment.id == payment_id))
