"""Health check and service index endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from payout_engine.api.dependencies import Engine
from payout_engine.api.schemas import HealthResponse
from payout_engine.models import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    responses={503: {"model": HealthResponse}},
)
async def health_check(engine: Engine) -> Any:
    """Check API and database health. 503 when the database is unreachable."""
    try:
        await engine.database.ping()
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        body = HealthResponse(
            status="unhealthy",
            timestamp=utcnow(),
            database="unhealthy",
            version=engine.settings.engine_version,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(mode="json", by_alias=True),
        )

    return HealthResponse(
        status="healthy",
        timestamp=utcnow(),
        database="healthy",
        version=engine.settings.engine_version,
    )


@router.get("/")
async def index(engine: Engine) -> dict[str, Any]:
    """Service name, version and endpoint index."""
    prefix = engine.settings.api_prefix
    return {
        "name": "Payout Engine API",
        "version": engine.settings.engine_version,
        "endpoints": {
            "health": "/health",
            "payments": f"{prefix}/payments",
            "vendors": f"{prefix}/vendors",
            "webhooks": f"{prefix}/webhooks/provider",
            "exchangeRates": f"{prefix}/exchange-rates",
        },
    }
