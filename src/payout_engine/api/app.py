"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payout_engine import __version__
from payout_engine.api.routes import (
    health_router,
    payments_router,
    rates_router,
    vendors_router,
    webhooks_router,
)
from payout_engine.config import Settings, get_settings
from payout_engine.database import Database
from payout_engine.engine import PayoutEngine
from payout_engine.errors import PayoutEngineError
from payout_engine.providers import SettlementProvider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    engine: PayoutEngine = app.state.engine
    # Startup
    if engine.settings.auto_create_schema:
        await engine.database.create_all()
    yield
    # Shutdown
    await engine.close()


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    provider: SettlementProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The service graph is built here, not in the lifespan, so it exists even
    when the app is driven without startup events (e.g. in tests).
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="Payout Engine API",
        description="Vendor payouts: local currency to stablecoin to bank",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = PayoutEngine.build(settings, database=database, provider=provider)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayoutEngineError)
    async def payout_engine_error_handler(
        request: Request, exc: PayoutEngineError
    ) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed requests as 400."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": f"{location}: {message}" if location else message,
                "code": "VALIDATION_ERROR",
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payments_router, prefix=settings.api_prefix)
    app.include_router(vendors_router, prefix=settings.api_prefix)
    app.include_router(webhooks_router, prefix=settings.api_prefix)
    app.include_router(rates_router, prefix=settings.api_prefix)

    return app
