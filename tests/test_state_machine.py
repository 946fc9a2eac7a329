"""Tests for payment and transaction state machines."""

import pytest

from payout_engine.services.state_machine import (
    InvalidTransitionError,
    PaymentStateMachine,
    PaymentStatus,
    TransactionStateMachine,
    TransactionStatus,
    TransactionType,
)


class TestPaymentStateMachine:
    """Test payment transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # PENDING → PROCESSING
        assert PaymentStateMachine.can_transition("PENDING", "PROCESSING") is True

        # PENDING → FAILED (failure before processing starts)
        assert PaymentStateMachine.can_transition("PENDING", "FAILED") is True

        # PROCESSING → COMPLETED
        assert PaymentStateMachine.can_transition("PROCESSING", "COMPLETED") is True

        # PROCESSING → FAILED
        assert PaymentStateMachine.can_transition("PROCESSING", "FAILED") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip processing
        assert PaymentStateMachine.can_transition("PENDING", "COMPLETED") is False

        # Can't go backwards
        assert PaymentStateMachine.can_transition("PROCESSING", "PENDING") is False

        # Terminal states stay put
        assert PaymentStateMachine.can_transition("COMPLETED", "FAILED") is False
        assert PaymentStateMachine.can_transition("FAILED", "PROCESSING") is False
        assert PaymentStateMachine.can_transition("FAILED", "COMPLETED") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PaymentStateMachine.validate_transition("COMPLETED", "FAILED")

        assert exc_info.value.from_status == "COMPLETED"
        assert exc_info.value.to_status == "FAILED"

    def test_terminal_states(self):
        """COMPLETED and FAILED are terminal."""
        assert PaymentStateMachine.is_terminal("COMPLETED") is True
        assert PaymentStateMachine.is_terminal("FAILED") is True
        assert PaymentStateMachine.is_terminal("PENDING") is False
        assert PaymentStateMachine.is_terminal("PROCESSING") is False

    def test_allowed_sources(self):
        """Sources are the statuses a conditional update may move from."""
        assert PaymentStateMachine.allowed_sources(PaymentStatus.PROCESSING) == ["PENDING"]
        assert sorted(PaymentStateMachine.allowed_sources(PaymentStatus.FAILED)) == [
            "PENDING",
            "PROCESSING",
        ]
        assert PaymentStateMachine.allowed_sources(PaymentStatus.COMPLETED) == ["PROCESSING"]
        assert PaymentStateMachine.allowed_sources(PaymentStatus.PENDING) == []

    def test_next_statuses(self):
        assert PaymentStateMachine.get_next_statuses("PROCESSING") == ["COMPLETED", "FAILED"]
        assert PaymentStateMachine.get_next_statuses("COMPLETED") == []


class TestTransactionStateMachine:
    """Test settlement step transitions."""

    def test_confirm_and_fail(self):
        assert TransactionStateMachine.can_transition("PENDING", "CONFIRMED") is True
        assert TransactionStateMachine.can_transition("PENDING", "FAILED") is True

    def test_reversal_after_confirmation(self):
        """A confirmed step can still be failed by the provider."""
        assert TransactionStateMachine.can_transition("CONFIRMED", "FAILED") is True
        assert TransactionStateMachine.can_transition("CONFIRMED", "PENDING") is False

    def test_failed_is_terminal(self):
        assert TransactionStateMachine.is_terminal(TransactionStatus.FAILED) is True
        assert TransactionStateMachine.can_transition("FAILED", "CONFIRMED") is False

    def test_confirmed_not_reentered(self):
        """Confirming twice is not a transition."""
        assert TransactionStatus.CONFIRMED not in TransactionStateMachine.allowed_sources(
            TransactionStatus.CONFIRMED
        )


class TestTransactionType:
    """Test pipeline step ordering."""

    def test_sequence_follows_pipeline_order(self):
        assert [t.sequence for t in TransactionType] == [1, 2, 3, 4]
        assert TransactionType.PAYMENT_IN.sequence == 1
        assert TransactionType.PAYOUT.sequence == 4

    def test_enum_values_are_strings(self):
        assert TransactionType.EXCHANGE_TO_STABLECOIN == "EXCHANGE_TO_STABLECOIN"
        assert PaymentStatus.COMPLETED == "COMPLETED"
