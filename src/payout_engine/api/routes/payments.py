"""Payment API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Header, status

from payout_engine.api.dependencies import Engine
from payout_engine.api.schemas import (
    ErrorResponse,
    IdempotencyKeyResponse,
    PaymentCreate,
    PaymentCreateResponse,
    PaymentStatusResponse,
)
from payout_engine.services.validation import generate_idempotency_key

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_payment(
    engine: Engine,
    payload: PaymentCreate,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> PaymentCreateResponse:
    """Initiate a payment. Settlement runs in the background.

    Repeating a request with the same Idempotency-Key returns the payment
    created the first time.
    """
    result = await engine.payments.initiate(
        vendor_id=payload.vendor_id,
        source_amount=payload.amount_sgd,
        customer_reference=payload.customer_reference,
        description=payload.description,
        idempotency_key=idempotency_key,
    )
    return PaymentCreateResponse.from_payment(result.payment)


@router.post(
    "/generate-idempotency-key",
    response_model=IdempotencyKeyResponse,
)
async def create_idempotency_key() -> IdempotencyKeyResponse:
    """Issue a fresh idempotency key. Nothing is stored."""
    return IdempotencyKeyResponse(idempotency_key=generate_idempotency_key())


@router.get(
    "/{payment_id}",
    response_model=PaymentStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payment(engine: Engine, payment_id: str) -> PaymentStatusResponse:
    """Payment status with its settlement steps."""
    payment = await engine.payments.get_status(payment_id)
    return PaymentStatusResponse.from_payment(payment)
