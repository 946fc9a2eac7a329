"""Exchange rate endpoint."""

from typing import Annotated

from fastapi import APIRouter, Query

from payout_engine.api.dependencies import Engine
from payout_engine.api.schemas import ExchangeRateResponse
from payout_engine.models import utcnow

router = APIRouter(tags=["rates"])


@router.get("/exchange-rates", response_model=ExchangeRateResponse)
async def get_exchange_rate(
    engine: Engine,
    from_currency: Annotated[str, Query(alias="from", min_length=3, max_length=8)] = "SGD",
    to_currency: Annotated[str, Query(alias="to", min_length=3, max_length=8)] = "USD",
) -> ExchangeRateResponse:
    """Current rate for one currency pair. Unknown pairs report 1."""
    from_currency = from_currency.upper()
    to_currency = to_currency.upper()
    return ExchangeRateResponse(
        from_currency=from_currency,
        to_currency=to_currency,
        rate=engine.rates.rate(from_currency, to_currency),
        source=engine.rates.source_name,
        timestamp=utcnow(),
    )
