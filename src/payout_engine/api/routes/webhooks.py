"""Settlement provider webhook endpoint."""

from typing import Annotated

from fastapi import APIRouter, Header, Request

from payout_engine.api.dependencies import Engine
from payout_engine.api.schemas import ErrorResponse, WebhookAckResponse

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/provider",
    response_model=WebhookAckResponse,
    responses={
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def provider_webhook(
    engine: Engine,
    request: Request,
    x_signature: Annotated[str | None, Header(alias="X-Signature")] = None,
) -> WebhookAckResponse:
    """Receive a provider event.

    The signature is checked against the exact bytes received, so the body
    is read raw rather than parsed by FastAPI.
    """
    body = await request.body()
    result = await engine.webhooks.ingest(body, x_signature)
    return WebhookAckResponse(status=result.status)
