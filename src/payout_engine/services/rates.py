"""Exchange rate lookup.

Rates are looked up per ordered currency pair. An unknown pair resolves to an
identity rate rather than an error; multi-hop conversions multiply the
single-hop rates along the route.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Mapping, Protocol

IDENTITY_RATE = Decimal("1")

AMOUNT_QUANTUM = Decimal("0.000001")
RATE_QUANTUM = Decimal("0.0000000001")

DEFAULT_RATES: dict[tuple[str, str], Decimal] = {
    ("SGD", "USDC"): Decimal("0.74"),
    ("USDC", "USD"): Decimal("1.0"),
    ("SGD", "USD"): Decimal("0.74"),
}


class RateProvider(Protocol):
    """Source of single-hop exchange rates."""

    source_name: str

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Rate to convert one unit of from_currency into to_currency."""
        ...


class StaticRateProvider:
    """Fixed lookup table of rates.

    Stands in for a live rate feed; the table can be overridden per instance.
    """

    source_name = "static"

    def __init__(self, table: Mapping[tuple[str, str], Decimal] | None = None):
        self._table = {
            (src.upper(), dst.upper()): Decimal(value)
            for (src, dst), value in (table or DEFAULT_RATES).items()
        }

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Look up a rate, falling back to identity for unknown pairs."""
        return self._table.get(
            (from_currency.upper(), to_currency.upper()), IDENTITY_RATE
        )

    def pairs(self) -> list[tuple[str, str]]:
        """Currency pairs with an explicit rate."""
        return sorted(self._table)


def conversion_rate(provider: RateProvider, *currencies: str) -> Decimal:
    """Compose the rate along a route, e.g. ("SGD", "USDC", "USD")."""
    if len(currencies) < 2:
        raise ValueError("A conversion route needs at least two currencies")
    rate = IDENTITY_RATE
    for from_currency, to_currency in zip(currencies, currencies[1:]):
        rate *= provider.rate(from_currency, to_currency)
    return rate


def quantize_amount(amount: Decimal) -> Decimal:
    """Round a monetary amount to storage precision."""
    return amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_EVEN)


def quantize_rate(rate: Decimal) -> Decimal:
    """Round an exchange rate to storage precision."""
    return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_EVEN)
