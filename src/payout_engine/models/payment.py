"""Payment and settlement-step models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CHAR,
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payout_engine.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from payout_engine.models.vendor import Vendor

AMOUNT = Numeric(20, 6)
RATE = Numeric(20, 10)


class Payment(Base, TimestampMixin, UpdatedAtMixin):
    """One end-to-end conversion and payout request.

    Idempotent by idempotency_key.
    """

    __tablename__ = "payment"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    idempotency_key: Mapped[str] = mapped_column(String, nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendor.id"), nullable=False)
    source_amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    source_currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    destination_amount: Mapped[Decimal | None] = mapped_column(AMOUNT, nullable=True)
    destination_currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(RATE, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    provider_payment_id: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_reference: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    expected_settlement_time: Mapped[datetime | None] = mapped_column(nullable=True)
    actual_settlement_time: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="payment_idempotency_key_uq"),
        CheckConstraint("source_amount > 0", name="payment_source_amount_ck"),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')",
            name="payment_status_ck",
        ),
        Index("payment_provider_payment_id", "provider_payment_id"),
        Index("payment_vendor_created", "vendor_id", "created_at"),
    )

    # Relationships
    vendor: Mapped[Vendor] = relationship(back_populates="payments")
    transactions: Mapped[list[Transaction]] = relationship(
        back_populates="payment",
        order_by=lambda: [Transaction.created_at, Transaction.sequence],
    )


class Transaction(Base, TimestampMixin, UpdatedAtMixin):
    """One settlement step of a payment. Append-only."""

    __tablename__ = "payment_transaction"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payment_id: Mapped[UUID] = mapped_column(ForeignKey("payment.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    fee_amount: Mapped[Decimal | None] = mapped_column(AMOUNT, nullable=True)
    fee_currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    external_id: Mapped[str | None] = mapped_column(String, nullable=True)
    proof_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("payment_id", "sequence", name="payment_transaction_sequence_uq"),
        CheckConstraint(
            "type IN ('PAYMENT_IN', 'EXCHANGE_TO_STABLECOIN', 'EXCHANGE_TO_FIAT', 'PAYOUT')",
            name="payment_transaction_type_ck",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'FAILED')",
            name="payment_transaction_status_ck",
        ),
        Index("payment_transaction_external_id", "external_id"),
    )

    # Relationships
    payment: Mapped[Payment] = relationship(back_populates="transactions")
