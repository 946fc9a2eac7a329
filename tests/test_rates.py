"""Tests for exchange rate lookup and composition."""

from decimal import Decimal

import pytest

from payout_engine.services.rates import (
    IDENTITY_RATE,
    StaticRateProvider,
    conversion_rate,
    quantize_amount,
    quantize_rate,
)


class TestStaticRateProvider:
    """Test the static rate table."""

    def test_known_pairs(self):
        rates = StaticRateProvider()
        assert rates.rate("SGD", "USDC") == Decimal("0.74")
        assert rates.rate("USDC", "USD") == Decimal("1.0")
        assert rates.rate("SGD", "USD") == Decimal("0.74")

    def test_unknown_pair_is_identity(self):
        """An unknown pair resolves to 1 instead of failing."""
        rates = StaticRateProvider()
        assert rates.rate("EUR", "JPY") == IDENTITY_RATE
        assert rates.rate("USD", "SGD") == Decimal("1")

    def test_pairs_are_ordered(self):
        """Rates are per ordered pair: the reverse is not implied."""
        rates = StaticRateProvider({("SGD", "USDC"): Decimal("0.74")})
        assert rates.rate("SGD", "USDC") == Decimal("0.74")
        assert rates.rate("USDC", "SGD") == IDENTITY_RATE

    def test_lookup_is_case_insensitive(self):
        rates = StaticRateProvider()
        assert rates.rate("sgd", "usdc") == Decimal("0.74")

    def test_custom_table(self):
        rates = StaticRateProvider({("sgd", "usdc"): "0.75"})
        assert rates.rate("SGD", "USDC") == Decimal("0.75")
        assert rates.pairs() == [("SGD", "USDC")]


class TestConversionRate:
    """Test multi-hop composition."""

    def test_two_hops_multiply(self):
        rates = StaticRateProvider(
            {("SGD", "USDC"): Decimal("0.74"), ("USDC", "USD"): Decimal("0.99")}
        )
        assert conversion_rate(rates, "SGD", "USDC", "USD") == Decimal("0.7326")

    def test_single_hop(self):
        assert conversion_rate(StaticRateProvider(), "SGD", "USDC") == Decimal("0.74")

    def test_unknown_hop_contributes_identity(self):
        assert conversion_rate(StaticRateProvider(), "SGD", "USDC", "EUR") == Decimal("0.74")

    def test_route_needs_two_currencies(self):
        with pytest.raises(ValueError):
            conversion_rate(StaticRateProvider(), "SGD")


class TestQuantize:
    def test_amount_precision(self):
        assert quantize_amount(Decimal("1.4770414800")) == Decimal("1.477041")

    def test_half_even(self):
        assert quantize_amount(Decimal("0.0000005")) == Decimal("0.000000")
        assert quantize_amount(Decimal("0.0000015")) == Decimal("0.000002")

    def test_rate_precision(self):
        assert quantize_rate(Decimal("0.74")) == Decimal("0.7400000000")
