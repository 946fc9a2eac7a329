"""Tests for the sandbox settlement provider.

Tests verify:
1. Synthetic ids and proof hashes have the expected shape
2. Retries with the same idempotency key replay the first result
3. Failure simulation surfaces as UpstreamError
"""

import re
from decimal import Decimal

import pytest

from payout_engine.errors import UpstreamError
from payout_engine.providers import SandboxSettlementProvider

HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")


class TestSandboxProvider:
    """Test sandbox provider."""

    async def test_payment_intent_then_confirmation(self):
        """Intent is pending until confirmed, then carries a proof hash."""
        provider = SandboxSettlementProvider(confirmation_delay=0)

        intent = await provider.create_payment_intent(
            amount=Decimal("1000"),
            currency="SGD",
            settlement_currency="USDC",
            idempotency_key="key-1",
        )
        assert intent.accepted is True
        assert intent.intent_id.startswith("pi_")
        assert provider.get_status(intent.intent_id) == "pending"

        confirmation = await provider.await_confirmation(intent.intent_id)
        assert confirmation.confirmed is True
        assert HASH_PATTERN.match(confirmation.proof_hash)
        assert provider.get_status(intent.intent_id) == "confirmed"

    async def test_intent_replayed_for_same_key(self):
        provider = SandboxSettlementProvider(confirmation_delay=0)
        kwargs = dict(
            amount=Decimal("10"), currency="SGD", settlement_currency="USDC", idempotency_key="k"
        )
        first = await provider.create_payment_intent(**kwargs)
        second = await provider.create_payment_intent(**kwargs)
        assert first.intent_id == second.intent_id

    async def test_unknown_intent_not_confirmed(self):
        provider = SandboxSettlementProvider(confirmation_delay=0)
        confirmation = await provider.await_confirmation("pi_missing")
        assert confirmation.confirmed is False
        assert confirmation.proof_hash is None

    async def test_exchange(self):
        provider = SandboxSettlementProvider(confirmation_delay=0)
        result = await provider.exchange(
            amount=Decimal("1000"),
            from_currency="SGD",
            to_currency="USDC",
            idempotency_key="key-1-exchange",
        )
        assert result.accepted is True
        assert result.transfer_id.startswith("exchange_sgd_usdc_")
        assert HASH_PATTERN.match(result.proof_hash)
        assert provider.get_status(result.transfer_id) == "complete"

    async def test_transfer_replayed_for_same_key(self):
        provider = SandboxSettlementProvider(confirmation_delay=0)
        kwargs = dict(
            amount=Decimal("5"), from_currency="SGD", to_currency="USDC", idempotency_key="x"
        )
        first = await provider.exchange(**kwargs)
        second = await provider.exchange(**kwargs)
        assert second.transfer_id == first.transfer_id
        assert second.proof_hash == first.proof_hash

    async def test_replay_among_many_keys(self):
        """Each key replays its own record, whatever else has been submitted."""
        provider = SandboxSettlementProvider(confirmation_delay=0)
        issued = {}
        for i in range(200):
            result = await provider.exchange(
                amount=Decimal("1"), from_currency="SGD", to_currency="USDC", idempotency_key=f"k{i}"
            )
            issued[f"k{i}"] = result.transfer_id
        intent = await provider.create_payment_intent(
            amount=Decimal("1"), currency="SGD", settlement_currency="USDC", idempotency_key="k7"
        )

        for key in ("k0", "k7", "k199"):
            replay = await provider.exchange(
                amount=Decimal("1"), from_currency="SGD", to_currency="USDC", idempotency_key=key
            )
            assert replay.transfer_id == issued[key]
        assert intent.intent_id not in issued.values()
        assert len(set(issued.values())) == 200

    async def test_payout_has_delivery_estimate(self):
        provider = SandboxSettlementProvider(confirmation_delay=0)
        result = await provider.payout(
            amount=Decimal("737.04"),
            currency="USD",
            destination={"routing_number": "021000021", "account_number_last4": "9012"},
            idempotency_key="key-1-payout",
        )
        assert result.accepted is True
        assert result.transfer_id.startswith("payout_")
        assert result.estimated_delivery is not None

    async def test_simulated_failure(self):
        """Simulated failures raise UpstreamError until cleared."""
        provider = SandboxSettlementProvider(confirmation_delay=0)
        provider.simulate_failure("exchange", "liquidity unavailable")

        with pytest.raises(UpstreamError, match="liquidity unavailable"):
            await provider.exchange(
                amount=Decimal("1"), from_currency="SGD", to_currency="USDC", idempotency_key="f"
            )

        provider.clear_failures()
        result = await provider.exchange(
            amount=Decimal("1"), from_currency="SGD", to_currency="USDC", idempotency_key="f"
        )
        assert result.accepted is True

    def test_simulate_failure_rejects_unknown_operation(self):
        provider = SandboxSettlementProvider()
        with pytest.raises(ValueError):
            provider.simulate_failure("refund")
