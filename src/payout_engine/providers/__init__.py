"""Settlement provider adapters."""

from payout_engine.providers.base import (
    ConfirmationResult,
    IntentResult,
    SettlementProvider,
    TransferResult,
)
from payout_engine.providers.sandbox import SandboxSettlementProvider

__all__ = [
    "SettlementProvider",
    "IntentResult",
    "ConfirmationResult",
    "TransferResult",
    "SandboxSettlementProvider",
]
