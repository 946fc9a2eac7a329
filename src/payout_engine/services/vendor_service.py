"""Vendor onboarding and management."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from payout_engine.errors import ConflictError, ValidationError, VendorNotFound
from payout_engine.models import BankAccount, Payment, Vendor, utcnow
from payout_engine.services.validation import (
    is_valid_bank_account,
    is_valid_email,
    sanitize_string,
)

if TYPE_CHECKING:
    from payout_engine.database import Database

logger = logging.getLogger(__name__)

RECENT_PAYMENTS_LIMIT = 10
MAX_PAGE_SIZE = 100


class VendorStatus(str, Enum):
    """Vendor status values. Only ACTIVE vendors can be paid."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


@dataclass(frozen=True)
class BankAccountInput:
    account_number: str
    routing_number: str
    bank_name: str
    account_holder: str


@dataclass(frozen=True)
class VendorDetail:
    """Vendor with its bank account and most recent payments."""

    vendor: Vendor
    recent_payments: list[Payment] = field(default_factory=list)


@dataclass(frozen=True)
class VendorSummary:
    vendor: Vendor
    payment_count: int


@dataclass(frozen=True)
class VendorPage:
    """One page of vendors, newest first."""

    items: list[VendorSummary]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


def _uuid_or_not_found(vendor_id: str | UUID) -> UUID:
    if isinstance(vendor_id, UUID):
        return vendor_id
    try:
        return UUID(str(vendor_id))
    except ValueError:
        raise VendorNotFound(f"Vendor {vendor_id} not found") from None


class VendorService:
    """Creates vendors with their payout bank account and manages status."""

    def __init__(self, database: Database):
        self.database = database

    async def create_vendor(
        self,
        *,
        name: str,
        email: str,
        bank_account: BankAccountInput,
        phone: str | None = None,
        address: str | None = None,
    ) -> Vendor:
        """Create an ACTIVE vendor with a US/USD bank account.

        Raises:
            ValidationError: If the email or bank details are malformed
            ConflictError: If a vendor with this email already exists
        """
        email = email.strip().lower()
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        if not is_valid_bank_account(bank_account.account_number, bank_account.routing_number):
            raise ValidationError("Invalid bank account details")

        name = sanitize_string(name)
        if not name:
            raise ValidationError("Vendor name is required")

        try:
            async with self.database.session() as session:
                existing = await session.scalar(select(Vendor.id).where(Vendor.email == email))
                if existing is not None:
                    raise ConflictError("Vendor with this email already exists")

                vendor = Vendor(
                    name=name,
                    email=email,
                    phone=sanitize_string(phone) if phone else None,
                    address=sanitize_string(address) if address else None,
                    status=VendorStatus.ACTIVE.value,
                )
                vendor.bank_account = BankAccount(
                    account_number=bank_account.account_number,
                    routing_number=bank_account.routing_number,
                    bank_name=sanitize_string(bank_account.bank_name),
                    account_holder=sanitize_string(bank_account.account_holder),
                    country="US",
                    currency="USD",
                )
                session.add(vendor)
                await session.flush()
        except IntegrityError:
            raise ConflictError("Vendor with this email already exists") from None

        logger.info("Vendor %s created (%s)", vendor.id, vendor.email)
        return vendor

    async def get_vendor(self, vendor_id: str | UUID) -> VendorDetail:
        """Vendor, bank account and the last 10 payments (newest first).

        Raises:
            VendorNotFound: If the id is unknown or not a UUID
        """
        vid = _uuid_or_not_found(vendor_id)
        async with self.database.session() as session:
            vendor = await session.scalar(
                select(Vendor)
                .where(Vendor.id == vid)
                .options(selectinload(Vendor.bank_account))
            )
            if vendor is None:
                raise VendorNotFound(f"Vendor {vendor_id} not found")
            result = await session.execute(
                select(Payment)
                .where(Payment.vendor_id == vid)
                .order_by(Payment.created_at.desc())
                .limit(RECENT_PAYMENTS_LIMIT)
            )
            recent = list(result.scalars())
        return VendorDetail(vendor=vendor, recent_payments=recent)

    async def list_vendors(self, page: int = 1, limit: int = 20) -> VendorPage:
        """List vendors newest first with their payment counts.

        Raises:
            ValidationError: If page < 1 or limit is outside 1..100
        """
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        payment_count = (
            select(func.count(Payment.id))
            .where(Payment.vendor_id == Vendor.id)
            .correlate(Vendor)
            .scalar_subquery()
        )
        async with self.database.session() as session:
            total = await session.scalar(select(func.count(Vendor.id)))
            result = await session.execute(
                select(Vendor, payment_count)
                .options(selectinload(Vendor.bank_account))
                .order_by(Vendor.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            items = [VendorSummary(vendor=v, payment_count=count) for v, count in result.all()]
        return VendorPage(items=items, page=page, limit=limit, total=total or 0)

    async def update_vendor_status(
        self,
        vendor_id: str | UUID,
        status: VendorStatus | str,
    ) -> Vendor:
        """Set a vendor's status.

        Raises:
            ValidationError: If status is not a VendorStatus value
            VendorNotFound: If the vendor does not exist
        """
        try:
            new_status = VendorStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in VendorStatus)
            raise ValidationError(f"status must be one of: {allowed}") from None

        vid = _uuid_or_not_found(vendor_id)
        async with self.database.session() as session:
            vendor = await session.get(Vendor, vid)
            if vendor is None:
                raise VendorNotFound(f"Vendor {vendor_id} not found")
            vendor.status = new_status.value
            vendor.updated_at = utcnow()
            await session.flush()
        logger.info("Vendor %s status set to %s", vid, new_status.value)
        return vendor
