"""Vendor and payout destination models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CHAR, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payout_engine.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from payout_engine.models.payment import Payment


class Vendor(Base, TimestampMixin, UpdatedAtMixin):
    """Payee on the platform. Never hard-deleted."""

    __tablename__ = "vendor"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")

    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE', 'INACTIVE', 'SUSPENDED')",
            name="vendor_status_check",
        ),
    )

    # Relationships
    bank_account: Mapped[BankAccount | None] = relationship(
        back_populates="vendor", uselist=False
    )
    payments: Mapped[list[Payment]] = relationship(back_populates="vendor")


class BankAccount(Base, TimestampMixin):
    """Payout destination, owned 1:1 by a vendor. Immutable after creation."""

    __tablename__ = "bank_account"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    vendor_id: Mapped[UUID] = mapped_column(
        ForeignKey("vendor.id"),
        nullable=False,
        unique=True,
    )
    account_number: Mapped[str] = mapped_column(String, nullable=False)
    routing_number: Mapped[str] = mapped_column(String, nullable=False)
    bank_name: Mapped[str] = mapped_column(String, nullable=False)
    account_holder: Mapped[str] = mapped_column(String, nullable=False)
    country: Mapped[str] = mapped_column(CHAR(2), nullable=False, default="US")
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, default="USD")
    provider_account_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # Relationships
    vendor: Mapped[Vendor] = relationship(back_populates="bank_account")

    @property
    def masked_account_number(self) -> str:
        """Account number with all but the last four digits hidden."""
        return f"****{self.account_number[-4:]}"
