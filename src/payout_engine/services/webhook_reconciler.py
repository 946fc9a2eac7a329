"""Settlement provider webhook ingestion.

Flow for one delivery:
1. Verify the HMAC-SHA256 signature over the raw body (when a secret is set)
2. Record the event, keyed by the provider's event id
3. Apply the handler for its type and mark the event processed, in one
   database transaction

The processed mark is conditional on the row still being unprocessed, so of
two concurrent deliveries of the same event only one commits its effects.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from payout_engine.errors import (
    NotFoundError,
    PayoutEngineError,
    SignatureError,
    ValidationError,
    WebhookProcessingError,
)
from payout_engine.models import Payment, Transaction, WebhookEvent, utcnow
from payout_engine.services.ledger_store import LedgerStore
from payout_engine.services.state_machine import (
    PaymentStatus,
    TransactionStatus,
    TransactionType,
)

if TYPE_CHECKING:
    from payout_engine.config import Settings
    from payout_engine.database import Database

logger = logging.getLogger(__name__)

PROCESSED = "processed"
ALREADY_PROCESSED = "already_processed"

SIGNATURE_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class WebhookEventKind(str, Enum):
    """Event types the provider sends."""

    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.failed"
    TRANSFER_COMPLETED = "transfer.completed"
    TRANSFER_FAILED = "transfer.failed"
    PAYOUT_COMPLETED = "payout.completed"
    PAYOUT_FAILED = "payout.failed"

    @classmethod
    def parse(cls, value: str) -> WebhookEventKind | None:
        """Kind for value, or None for types this service does not handle."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class WebhookEnvelope:
    """Parsed delivery body: {"Type": ..., "Id": ..., "Data": {...}}."""

    event_id: str
    event_type: str
    data: dict[str, Any]
    payload: dict[str, Any]


@dataclass(frozen=True)
class IngestResult:
    status: str
    event_id: str
    event_type: str
    related_payment_id: UUID | None = None
    related_transaction_id: UUID | None = None


@dataclass(frozen=True)
class _Affected:
    """Rows a handler touched, linked onto the event for audit."""

    payment_id: UUID | None = None
    transaction_id: UUID | None = None


class _LostRace(Exception):
    """Another delivery marked the event processed first."""


Handler = Callable[[LedgerStore, dict[str, Any]], Awaitable[_Affected]]


def compute_signature(secret: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 of raw_body."""
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


class WebhookReconciler:
    """Applies provider events to payments and their settlement steps."""

    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings
        self._handlers: dict[WebhookEventKind, Handler] = {
            WebhookEventKind.PAYMENT_INTENT_SUCCEEDED: self._on_payment_intent_succeeded,
            WebhookEventKind.PAYMENT_INTENT_FAILED: self._on_payment_intent_failed,
            WebhookEventKind.TRANSFER_COMPLETED: self._on_transfer_completed,
            WebhookEventKind.TRANSFER_FAILED: self._on_transfer_failed,
            WebhookEventKind.PAYOUT_COMPLETED: self._on_payout_completed,
            WebhookEventKind.PAYOUT_FAILED: self._on_payout_failed,
        }
        unhandled = set(WebhookEventKind) - set(self._handlers)
        if unhandled:
            names = ", ".join(sorted(k.value for k in unhandled))
            raise RuntimeError(f"No webhook handler for: {names}")
        if not settings.webhook_secret:
            logger.warning("Webhook secret not configured, signature verification disabled")

    def verify_signature(self, raw_body: bytes, signature: str | None) -> None:
        """Raise SignatureError unless signature matches raw_body.

        Skipped when no secret is configured.
        """
        secret = self.settings.webhook_secret
        if not secret:
            return
        if not signature:
            raise SignatureError("Missing webhook signature")
        expected = compute_signature(secret, raw_body)
        signature = signature.strip().lower()
        if not SIGNATURE_PATTERN.match(signature):
            raise SignatureError("Invalid webhook signature")
        if not hmac.compare_digest(expected, signature):
            raise SignatureError("Invalid webhook signature")

    @staticmethod
    def parse(raw_body: bytes) -> WebhookEnvelope:
        """Decode a delivery body.

        Raises:
            ValidationError: If the body is not a JSON object with Type and Id
        """
        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError("Webhook body is not valid JSON") from e
        if not isinstance(payload, dict):
            raise ValidationError("Webhook body must be a JSON object")

        event_type = payload.get("Type")
        event_id = payload.get("Id")
        if not event_type or not event_id:
            raise ValidationError("Webhook body requires Type and Id")
        data = payload.get("Data") or {}
        if not isinstance(data, dict):
            raise ValidationError("Webhook Data must be an object")
        return WebhookEnvelope(
            event_id=str(event_id),
            event_type=str(event_type),
            data=data,
            payload=payload,
        )

    async def ingest(self, raw_body: bytes, signature: str | None = None) -> IngestResult:
        """Verify, record and apply one webhook delivery.

        Returns:
            IngestResult with status "processed" or "already_processed"

        Raises:
            SignatureError: Signature mismatch; nothing is stored
            ValidationError: Malformed body
            NotFoundError: Unknown target while missing targets are surfaced
            WebhookProcessingError: A handler failed; the event stays unprocessed
        """
        self.verify_signature(raw_body, signature)
        envelope = self.parse(raw_body)
        logger.info("Received webhook %s (%s)", envelope.event_id, envelope.event_type)

        event = await self._record(envelope)
        if event.processed:
            logger.info("Webhook %s already processed", envelope.event_id)
            return self._result(envelope, ALREADY_PROCESSED, event)

        try:
            affected = await self._apply(event.id, envelope)
        except _LostRace:
            logger.info("Webhook %s processed by a concurrent delivery", envelope.event_id)
            return IngestResult(
                status=ALREADY_PROCESSED,
                event_id=envelope.event_id,
                event_type=envelope.event_type,
            )
        except PayoutEngineError:
            logger.warning("Webhook %s left unprocessed", envelope.event_id, exc_info=True)
            raise
        except Exception as e:
            logger.exception(
                "Error processing webhook %s (%s)", envelope.event_id, envelope.event_type
            )
            raise WebhookProcessingError("Webhook processing failed") from e

        return IngestResult(
            status=PROCESSED,
            event_id=envelope.event_id,
            event_type=envelope.event_type,
            related_payment_id=affected.payment_id,
            related_transaction_id=affected.transaction_id,
        )

    async def _record(self, envelope: WebhookEnvelope) -> WebhookEvent:
        """Insert the event, or refresh the payload of an unprocessed one."""
        try:
            async with self.database.session() as session:
                event = await self._find_event(session, envelope.event_id)
                if event is None:
                    event = WebhookEvent(
                        external_event_id=envelope.event_id,
                        event_type=envelope.event_type,
                        payload=envelope.payload,
                        processed=False,
                    )
                    session.add(event)
                elif not event.processed:
                    event.payload = envelope.payload
                await session.flush()
                return event
        except IntegrityError:
            # Concurrent first delivery inserted it
            async with self.database.session() as session:
                event = await self._find_event(session, envelope.event_id)
            if event is None:
                raise
            return event

    async def _apply(self, event_id: UUID, envelope: WebhookEnvelope) -> _Affected:
        kind = WebhookEventKind.parse(envelope.event_type)
        async with self.database.session() as session:
            if kind is None:
                logger.info("Unhandled webhook event type: %s", envelope.event_type)
                affected = _Affected()
            else:
                affected = await self._handlers[kind](LedgerStore(session), envelope.data)

            result = await session.execute(
                update(WebhookEvent)
                .where(WebhookEvent.id == event_id, WebhookEvent.processed.is_(False))
                .values(
                    processed=True,
                    processed_at=utcnow(),
                    related_payment_id=affected.payment_id,
                    related_transaction_id=affected.transaction_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise _LostRace()
        return affected

    @staticmethod
    async def _find_event(session, external_event_id: str) -> WebhookEvent | None:
        result = await session.execute(
            select(WebhookEvent).where(WebhookEvent.external_event_id == external_event_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _result(envelope: WebhookEnvelope, status: str, event: WebhookEvent) -> IngestResult:
        return IngestResult(
            status=status,
            event_id=envelope.event_id,
            event_type=envelope.event_type,
            related_payment_id=event.related_payment_id,
            related_transaction_id=event.related_transaction_id,
        )

    # Handlers

    @staticmethod
    def _correlation_id(data: dict[str, Any]) -> str:
        correlation_id = data.get("id")
        if not correlation_id:
            raise ValidationError("Webhook Data requires id")
        return str(correlation_id)

    def _missing(self, what: str, correlation_id: str) -> _Affected:
        if not self.settings.tolerate_missing_webhook_targets:
            raise NotFoundError(f"{what} not found for provider id {correlation_id}")
        logger.warning("%s not found for provider id %s, ignoring", what, correlation_id)
        return _Affected()

    async def _payment_and_intent(
        self,
        store: LedgerStore,
        data: dict[str, Any],
    ) -> tuple[Payment | None, Transaction | None, str]:
        intent_id = self._correlation_id(data)
        payment = await store.find_payment_by_provider_id(intent_id)
        if payment is None:
            return None, None, intent_id
        tx = await store.get_transaction(payment.id, TransactionType.PAYMENT_IN)
        if tx is not None and tx.external_id != intent_id:
            tx = None
        return payment, tx, intent_id

    async def _confirm(self, store: LedgerStore, tx: Transaction, data: dict[str, Any]) -> None:
        result = await store.transition_transaction(tx.id, TransactionStatus.CONFIRMED)
        if not result:
            logger.info("Transaction %s already %s, not confirmed", tx.id, result.status)
        proof_hash = data.get("transactionHash")
        if proof_hash:
            await store.attach_proof_hash(tx.id, str(proof_hash))

    async def _fail_transaction(self, store: LedgerStore, tx: Transaction) -> None:
        result = await store.transition_transaction(tx.id, TransactionStatus.FAILED)
        if not result:
            logger.info("Transaction %s already %s, not failed", tx.id, result.status)

    async def _move_payment(
        self,
        store: LedgerStore,
        payment_id: UUID,
        to_status: PaymentStatus,
        **values: Any,
    ) -> None:
        result = await store.transition_payment(payment_id, to_status, **values)
        if result:
            logger.info("Payment %s marked %s by webhook", payment_id, to_status.value)
        else:
            logger.info(
                "Payment %s is %s, ignoring webhook move to %s",
                payment_id,
                result.status,
                to_status.value,
            )

    async def _on_payment_intent_succeeded(
        self, store: LedgerStore, data: dict[str, Any]
    ) -> _Affected:
        payment, tx, intent_id = await self._payment_and_intent(store, data)
        if payment is None:
            return self._missing("Payment", intent_id)
        if tx is None:
            return self._missing("Payment intent transaction", intent_id)
        await self._confirm(store, tx, data)
        return _Affected(payment_id=payment.id, transaction_id=tx.id)

    async def _on_payment_intent_failed(
        self, store: LedgerStore, data: dict[str, Any]
    ) -> _Affected:
        payment, tx, intent_id = await self._payment_and_intent(store, data)
        if payment is None:
            return self._missing("Payment", intent_id)
        if tx is not None:
            await self._fail_transaction(store, tx)
        await self._move_payment(store, payment.id, PaymentStatus.FAILED)
        return _Affected(payment_id=payment.id, transaction_id=tx.id if tx else None)

    async def _on_transfer_completed(self, store: LedgerStore, data: dict[str, Any]) -> _Affected:
        transfer_id = self._correlation_id(data)
        tx = await store.find_transaction_by_external_id(transfer_id)
        if tx is None:
            return self._missing("Transaction", transfer_id)
        await self._confirm(store, tx, data)
        return _Affected(payment_id=tx.payment_id, transaction_id=tx.id)

    async def _on_transfer_failed(self, store: LedgerStore, data: dict[str, Any]) -> _Affected:
        transfer_id = self._correlation_id(data)
        tx = await store.find_transaction_by_external_id(transfer_id)
        if tx is None:
            return self._missing("Transaction", transfer_id)
        await self._fail_transaction(store, tx)
        if tx.type == TransactionType.PAYOUT.value:
            await self._move_payment(store, tx.payment_id, PaymentStatus.FAILED)
        return _Affected(payment_id=tx.payment_id, transaction_id=tx.id)

    async def _on_payout_completed(self, store: LedgerStore, data: dict[str, Any]) -> _Affected:
        payout_id = self._correlation_id(data)
        tx = await store.find_transaction_by_external_id(payout_id)
        if tx is None:
            return self._missing("Transaction", payout_id)
        await self._confirm(store, tx, data)
        await self._move_payment(
            store,
            tx.payment_id,
            PaymentStatus.COMPLETED,
            actual_settlement_time=utcnow(),
        )
        return _Affected(payment_id=tx.payment_id, transaction_id=tx.id)

    async def _on_payout_failed(self, store: LedgerStore, data: dict[str, Any]) -> _Affected:
        payout_id = self._correlation_id(data)
        tx = await store.find_transaction_by_external_id(payout_id)
        if tx is None:
            return self._missing("Transaction", payout_id)
        await self._fail_transaction(store, tx)
        await self._move_payment(store, tx.payment_id, PaymentStatus.FAILED)
        return _Affected(payment_id=tx.payment_id, transaction_id=tx.id)
