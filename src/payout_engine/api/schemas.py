"""Pydantic schemas for API request/response models.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from payout_engine.models import BankAccount, Payment, Transaction, Vendor
from payout_engine.services.vendor_service import (
    VendorDetail,
    VendorPage,
    VendorStatus,
    VendorSummary,
)

# Decimals go out as JSON numbers
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ApiModel(BaseModel):
    """Base schema: camelCase aliases, accepts either spelling on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(ApiModel):
    detail: str
    code: str


# ============================================================================
# Payment schemas
# ============================================================================


class PaymentCreate(ApiModel):
    """Schema for initiating a payment."""

    vendor_id: UUID
    amount_sgd: Decimal
    customer_reference: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class PaymentCreateResponse(ApiModel):
    payment_id: UUID
    status: str
    amount_sgd: Amount
    estimated_amount_usd: Amount | None = None
    expected_settlement_time: datetime | None = None
    idempotency_key: str

    @classmethod
    def from_payment(cls, payment: Payment) -> PaymentCreateResponse:
        return cls(
            payment_id=payment.id,
            status=payment.status,
            amount_sgd=payment.source_amount,
            estimated_amount_usd=payment.destination_amount,
            expected_settlement_time=payment.expected_settlement_time,
            idempotency_key=payment.idempotency_key,
        )


class VendorRef(ApiModel):
    id: UUID
    name: str
    email: str


class TransactionResponse(ApiModel):
    """One settlement step."""

    id: UUID
    sequence: int
    type: str
    status: str
    amount: Amount
    currency: str
    fee_amount: Amount | None = None
    fee_currency: str | None = None
    external_id: str | None = None
    proof_hash: str | None = None
    created_at: datetime

    @classmethod
    def from_transaction(cls, tx: Transaction) -> TransactionResponse:
        return cls.model_validate(tx)


class PaymentStatusResponse(ApiModel):
    """Payment with its settlement steps, oldest first."""

    payment_id: UUID
    status: str
    amount_sgd: Amount
    amount_usd: Amount | None = None
    source_currency: str
    destination_currency: str
    exchange_rate: Amount | None = None
    customer_reference: str | None = None
    description: str | None = None
    idempotency_key: str
    vendor: VendorRef
    transactions: list[TransactionResponse]
    created_at: datetime
    updated_at: datetime
    expected_settlement_time: datetime | None = None
    actual_settlement_time: datetime | None = None

    @classmethod
    def from_payment(cls, payment: Payment) -> PaymentStatusResponse:
        return cls(
            payment_id=payment.id,
            status=payment.status,
            amount_sgd=payment.source_amount,
            amount_usd=payment.destination_amount,
            source_currency=payment.source_currency,
            destination_currency=payment.destination_currency,
            exchange_rate=payment.exchange_rate,
            customer_reference=payment.customer_reference,
            description=payment.description,
            idempotency_key=payment.idempotency_key,
            vendor=VendorRef.model_validate(payment.vendor),
            transactions=[TransactionResponse.from_transaction(tx) for tx in payment.transactions],
            created_at=payment.created_at,
            updated_at=payment.updated_at,
            expected_settlement_time=payment.expected_settlement_time,
            actual_settlement_time=payment.actual_settlement_time,
        )


class IdempotencyKeyResponse(ApiModel):
    idempotency_key: str


# ============================================================================
# Vendor schemas
# ============================================================================


class BankAccountCreate(ApiModel):
    account_number: str = Field(min_length=1)
    routing_number: str = Field(min_length=1)
    bank_name: str = Field(min_length=1)
    account_holder: str = Field(min_length=1)


class VendorCreate(ApiModel):
    """Schema for onboarding a vendor with its payout account."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    bank_account: BankAccountCreate


class BankAccountResponse(ApiModel):
    """Bank account with the account number masked."""

    id: UUID
    account_number: str
    routing_number: str
    bank_name: str
    account_holder: str
    country: str
    currency: str

    @classmethod
    def from_bank_account(cls, bank: BankAccount | None) -> BankAccountResponse | None:
        if bank is None:
            return None
        return cls(
            id=bank.id,
            account_number=bank.masked_account_number,
            routing_number=bank.routing_number,
            bank_name=bank.bank_name,
            account_holder=bank.account_holder,
            country=bank.country,
            currency=bank.currency,
        )


class VendorResponse(ApiModel):
    id: UUID
    name: str
    email: str
    phone: str | None = None
    address: str | None = None
    status: str
    bank_account: BankAccountResponse | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_vendor(cls, vendor: Vendor) -> VendorResponse:
        return cls(
            id=vendor.id,
            name=vendor.name,
            email=vendor.email,
            phone=vendor.phone,
            address=vendor.address,
            status=vendor.status,
            bank_account=BankAccountResponse.from_bank_account(vendor.bank_account),
            created_at=vendor.created_at,
            updated_at=vendor.updated_at,
        )


class VendorPaymentSummary(ApiModel):
    id: UUID
    status: str
    amount_sgd: Amount
    amount_usd: Amount | None = None
    created_at: datetime


class VendorDetailResponse(VendorResponse):
    """Vendor with its 10 most recent payments."""

    recent_payments: list[VendorPaymentSummary]

    @classmethod
    def from_detail(cls, detail: VendorDetail) -> VendorDetailResponse:
        base = VendorResponse.from_vendor(detail.vendor)
        return cls(
            **base.model_dump(),
            recent_payments=[
                VendorPaymentSummary(
                    id=p.id,
                    status=p.status,
                    amount_sgd=p.source_amount,
                    amount_usd=p.destination_amount,
                    created_at=p.created_at,
                )
                for p in detail.recent_payments
            ],
        )


class BankAccountBrief(ApiModel):
    bank_name: str
    account_holder: str


class VendorListItem(ApiModel):
    id: UUID
    name: str
    email: str
    status: str
    bank_account: BankAccountBrief | None = None
    payment_count: int
    created_at: datetime

    @classmethod
    def from_summary(cls, summary: VendorSummary) -> VendorListItem:
        vendor = summary.vendor
        bank = vendor.bank_account
        return cls(
            id=vendor.id,
            name=vendor.name,
            email=vendor.email,
            status=vendor.status,
            bank_account=BankAccountBrief.model_validate(bank) if bank else None,
            payment_count=summary.payment_count,
            created_at=vendor.created_at,
        )


class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int


class VendorListResponse(ApiModel):
    vendors: list[VendorListItem]
    pagination: Pagination

    @classmethod
    def from_page(cls, page: VendorPage) -> VendorListResponse:
        return cls(
            vendors=[VendorListItem.from_summary(s) for s in page.items],
            pagination=Pagination(
                page=page.page,
                limit=page.limit,
                total=page.total,
                total_pages=page.total_pages,
            ),
        )


class VendorStatusUpdate(ApiModel):
    status: VendorStatus


class VendorStatusResponse(ApiModel):
    id: UUID
    name: str
    email: str
    status: str
    updated_at: datetime


# ============================================================================
# Webhook, rate and health schemas
# ============================================================================


class WebhookAckResponse(ApiModel):
    status: str


class ExchangeRateResponse(ApiModel):
    from_currency: str
    to_currency: str
    rate: Amount
    source: str
    timestamp: datetime


class HealthResponse(ApiModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    version: str
