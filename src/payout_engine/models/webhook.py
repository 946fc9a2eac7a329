"""Inbound webhook event records."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payout_engine.models.base import Base, TimestampMixin


class WebhookEvent(Base, TimestampMixin):
    """One notification from the settlement provider.

    Deduplicated by external_event_id.
    """

    __tablename__ = "webhook_event"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    external_event_id: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    related_payment_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payment.id"), nullable=True
    )
    related_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payment_transaction.id"), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("external_event_id", name="webhook_event_external_id_uq"),
    )
