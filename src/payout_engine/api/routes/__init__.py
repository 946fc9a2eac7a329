"""API routes."""

from payout_engine.api.routes.health import router as health_router
from payout_engine.api.routes.payments import router as payments_router
from payout_engine.api.routes.rates import router as rates_router
from payout_engine.api.routes.vendors import router as vendors_router
from payout_engine.api.routes.webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "payments_router",
    "rates_router",
    "vendors_router",
    "webhooks_router",
]
