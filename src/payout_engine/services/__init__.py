"""Payout engine services."""

from payout_engine.services.ledger_store import LedgerStore, TransitionResult
from payout_engine.services.payment_pipeline import PaymentPipeline, PipelineAborted
from payout_engine.services.payment_service import InitiationResult, PaymentService, Quote
from payout_engine.services.pipeline_runner import PipelineRunner
from payout_engine.services.rates import RateProvider, StaticRateProvider, conversion_rate
from payout_engine.services.state_machine import (
    InvalidTransitionError,
    PaymentStateMachine,
    PaymentStatus,
    TransactionStateMachine,
    TransactionStatus,
    TransactionType,
)
from payout_engine.services.vendor_service import VendorService, VendorStatus
from payout_engine.services.webhook_reconciler import (
    IngestResult,
    WebhookEventKind,
    WebhookReconciler,
)

__all__ = [
    "PaymentStateMachine",
    "PaymentStatus",
    "TransactionStateMachine",
    "TransactionStatus",
    "TransactionType",
    "InvalidTransitionError",
    "LedgerStore",
    "TransitionResult",
    "RateProvider",
    "StaticRateProvider",
    "conversion_rate",
    "PaymentPipeline",
    "PipelineAborted",
    "PipelineRunner",
    "PaymentService",
    "InitiationResult",
    "Quote",
    "VendorService",
    "VendorStatus",
    "WebhookReconciler",
    "WebhookEventKind",
    "IngestResult",
]
