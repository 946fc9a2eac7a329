"""Payment and transaction state machines with transition validation."""

from __future__ import annotations

from enum import Enum


class PaymentStatus(str, Enum):
    """Payment status values."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TransactionStatus(str, Enum):
    """Transaction status values."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class TransactionType(str, Enum):
    """Settlement steps, in pipeline order."""

    PAYMENT_IN = "PAYMENT_IN"
    EXCHANGE_TO_STABLECOIN = "EXCHANGE_TO_STABLECOIN"
    EXCHANGE_TO_FIAT = "EXCHANGE_TO_FIAT"
    PAYOUT = "PAYOUT"

    @property
    def sequence(self) -> int:
        """Position of this step in the pipeline (1-based)."""
        return list(TransactionType).index(self) + 1


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class _StateMachine:
    """Transition table lookups shared by payment and transaction machines."""

    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no further transitions are possible."""
        return not cls.VALID_TRANSITIONS.get(status)

    @classmethod
    def allowed_sources(cls, to_status: str) -> list[str]:
        """Statuses from which to_status may be entered.

        Used to build conditional updates, so a transition only lands if
        the row is still in a state that permits it.
        """
        return [
            from_status
            for from_status, targets in cls.VALID_TRANSITIONS.items()
            if to_status in targets
        ]


class PaymentStateMachine(_StateMachine):
    """State machine for payment status transitions.

    Allowed transitions:
    - PENDING → PROCESSING
    - PENDING → FAILED
    - PROCESSING → COMPLETED
    - PROCESSING → FAILED
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PaymentStatus.PENDING: [PaymentStatus.PROCESSING, PaymentStatus.FAILED],
        PaymentStatus.PROCESSING: [PaymentStatus.COMPLETED, PaymentStatus.FAILED],
        PaymentStatus.COMPLETED: [],  # Terminal state
        PaymentStatus.FAILED: [],  # Terminal state
    }


class TransactionStateMachine(_StateMachine):
    """State machine for settlement-step transitions.

    Allowed transitions:
    - PENDING → CONFIRMED
    - PENDING → FAILED
    - CONFIRMED → FAILED (provider reversal)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TransactionStatus.PENDING: [TransactionStatus.CONFIRMED, TransactionStatus.FAILED],
        TransactionStatus.CONFIRMED: [TransactionStatus.FAILED],
        TransactionStatus.FAILED: [],  # Terminal state
    }
