"""Property-based tests for settlement invariants.

These tests use hypothesis to generate amounts, rates and status
sequences and check that the invariants hold for all of them.
"""

from __future__ import annotations

from decimal import Decimal

from hypothesis import given, settings, strategies as st

from payout_engine.services.payment_pipeline import apply_fee
from payout_engine.services.rates import StaticRateProvider, conversion_rate, quantize_amount
from payout_engine.services.state_machine import (
    PaymentStateMachine,
    PaymentStatus,
    TransactionStateMachine,
    TransactionStatus,
)
from payout_engine.services.validation import validate_amount
from payout_engine.services.webhook_reconciler import WebhookReconciler, compute_signature

from .conftest import make_settings

CEILING = Decimal("1000000")

amounts = st.decimals(min_value=Decimal("0.01"), max_value=CEILING, places=2)
fee_rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("0.05"), places=4)
rates = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("5"), places=4)


class TestFeeInvariants:
    """Fees never create or destroy value within a step."""

    @given(gross=amounts, fee_rate=fee_rates)
    @settings(max_examples=100)
    def test_gross_splits_into_fee_and_net(self, gross: Decimal, fee_rate: Decimal):
        step = apply_fee(gross, fee_rate)
        assert step.fee + step.net == step.gross
        assert Decimal("0") <= step.fee <= step.gross
        assert step.net >= 0

    @given(source=amounts, rate=rates)
    @settings(max_examples=100)
    def test_chain_conserves_value_at_par(self, source: Decimal, rate: Decimal):
        """With a 1:1 stablecoin hop, every unit is either a fee or delivered."""
        exchange_fee = Decimal("0.001")
        payout_fee = Decimal("0.002")

        to_stable = apply_fee(source * rate, exchange_fee)
        to_fiat = apply_fee(to_stable.net * Decimal("1"), exchange_fee)
        payout = apply_fee(to_fiat.net, payout_fee)

        fees = to_stable.fee + to_fiat.fee + payout.fee
        assert fees + payout.net == to_stable.gross
        assert payout.net <= quantize_amount(source * rate)

    @given(first=rates, second=rates)
    @settings(max_examples=50)
    def test_conversion_rate_composes(self, first: Decimal, second: Decimal):
        provider = StaticRateProvider({("SGD", "USDC"): first, ("USDC", "USD"): second})
        combined = conversion_rate(provider, "SGD", "USDC", "USD")
        assert combined == first * second


class TestStateMachineInvariants:
    """Random walks through the state machines."""

    @given(steps=st.lists(st.sampled_from(list(PaymentStatus)), max_size=20))
    @settings(max_examples=100)
    def test_payment_terminal_states_are_final(self, steps: list[PaymentStatus]):
        status = PaymentStatus.PENDING
        history = [status]
        for target in steps:
            if PaymentStateMachine.can_transition(status, target):
                status = target
                history.append(status)

        # At most one terminal status, always last
        terminals = [s for s in history if PaymentStateMachine.is_terminal(s)]
        assert len(terminals) <= 1
        if terminals:
            assert history[-1] == terminals[0]
        assert PaymentStatus.PENDING not in history[1:]

    @given(steps=st.lists(st.sampled_from(list(TransactionStatus)), max_size=20))
    @settings(max_examples=100)
    def test_transaction_never_returns_to_pending(self, steps: list[TransactionStatus]):
        status = TransactionStatus.PENDING
        for target in steps:
            if TransactionStateMachine.can_transition(status, target):
                status = target
                assert status != TransactionStatus.PENDING

    @given(target=st.sampled_from(list(PaymentStatus)))
    def test_allowed_sources_agree_with_table(self, target: PaymentStatus):
        for source in PaymentStatus:
            expected = PaymentStateMachine.can_transition(source, target)
            assert (source in PaymentStateMachine.allowed_sources(target)) == expected


class TestInputInvariants:
    @given(amount=amounts)
    @settings(max_examples=50)
    def test_amounts_within_bounds_accepted(self, amount: Decimal):
        assert validate_amount(amount, CEILING) == amount

    @given(body=st.binary(min_size=1, max_size=512), secret=st.text(min_size=1, max_size=32))
    @settings(max_examples=50)
    def test_signature_accepts_only_its_own_body(self, body: bytes, secret: str):
        signature = compute_signature(secret, body)
        assert signature != compute_signature(secret, body + b" ")
        assert len(signature) == 64

    def test_signature_check_uses_raw_bytes(self, tmp_path):
        reconciler = WebhookReconciler(
            database=None, settings=make_settings(tmp_path, webhook_secret="s3cret")
        )
        body = b'{"Type": "payout.completed", "Id": "evt_1"}'
        reconciler.verify_signature(body, compute_signature("s3cret", body))
