"""Vendor API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from payout_engine.api.dependencies import Engine
from payout_engine.api.schemas import (
    ErrorResponse,
    VendorCreate,
    VendorDetailResponse,
    VendorListResponse,
    VendorResponse,
    VendorStatusResponse,
    VendorStatusUpdate,
)
from payout_engine.services.vendor_service import MAX_PAGE_SIZE, BankAccountInput

router = APIRouter(prefix="/vendors", tags=["vendors"])


@router.post(
    "",
    response_model=VendorResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_vendor(engine: Engine, payload: VendorCreate) -> VendorResponse:
    """Onboard a vendor with its payout bank account."""
    bank = payload.bank_account
    vendor = await engine.vendors.create_vendor(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
        bank_account=BankAccountInput(
            account_number=bank.account_number,
            routing_number=bank.routing_number,
            bank_name=bank.bank_name,
            account_holder=bank.account_holder,
        ),
    )
    return VendorResponse.from_vendor(vendor)


@router.get(
    "",
    response_model=VendorListResponse,
    responses={400: {"model": ErrorResponse}},
)
async def list_vendors(
    engine: Engine,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 20,
) -> VendorListResponse:
    """List vendors, newest first."""
    result = await engine.vendors.list_vendors(page=page, limit=limit)
    return VendorListResponse.from_page(result)


@router.get(
    "/{vendor_id}",
    response_model=VendorDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_vendor(engine: Engine, vendor_id: str) -> VendorDetailResponse:
    detail = await engine.vendors.get_vendor(vendor_id)
    return VendorDetailResponse.from_detail(detail)


@router.patch(
    "/{vendor_id}/status",
    response_model=VendorStatusResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_vendor_status(
    engine: Engine,
    vendor_id: str,
    payload: VendorStatusUpdate,
) -> VendorStatusResponse:
    """Activate, deactivate or suspend a vendor."""
    vendor = await engine.vendors.update_vendor_status(vendor_id, payload.status)
    return VendorStatusResponse.model_validate(vendor)
