"""Pytest fixtures for payout engine tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest

from payout_engine.config import Settings
from payout_engine.database import Database
from payout_engine.engine import PayoutEngine
from payout_engine.models import Payment, Transaction, Vendor
from payout_engine.providers import SandboxSettlementProvider
from payout_engine.services.state_machine import TransactionType
from payout_engine.services.vendor_service import BankAccountInput

WEBHOOK_SECRET = "whsec_test_secret"


def make_settings(tmp_path, **overrides) -> Settings:
    """Settings for a throwaway SQLite file database under tmp_path."""
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'payout_test.db'}",
        "confirmation_delay_seconds": 0,
        "pipeline_concurrency": 4,
        "shutdown_grace_seconds": 0,
    }
    values.update(overrides)
    return Settings(**values)


def bank_details(**overrides) -> BankAccountInput:
    values = {
        "account_number": "123456789012",
        "routing_number": "021000021",
        "bank_name": "Chase Bank",
        "account_holder": "Acme Supplies LLC",
    }
    values.update(overrides)
    return BankAccountInput(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Default test settings (no webhook secret)."""
    return make_settings(tmp_path)


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Fresh database with all tables created."""
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def provider() -> SandboxSettlementProvider:
    """Sandbox provider that confirms instantly."""
    return SandboxSettlementProvider(confirmation_delay=0)


@pytest.fixture
async def payout(
    settings: Settings,
    database: Database,
    provider: SandboxSettlementProvider,
) -> AsyncGenerator[PayoutEngine, None]:
    """Service graph over the test database."""
    engine = PayoutEngine.build(settings, database=database, provider=provider)
    yield engine
    await engine.runner.shutdown()


@pytest.fixture
async def vendor(payout: PayoutEngine) -> Vendor:
    """An ACTIVE vendor with a bank account."""
    return await payout.vendors.create_vendor(
        name="Acme Supplies",
        email=f"billing-{uuid4().hex[:8]}@acme.example",
        phone="+1 415 555 0100",
        address="1 Market St, San Francisco",
        bank_account=bank_details(),
    )


async def seed_payment(
    database: Database,
    vendor: Vendor,
    *,
    status: str = "PROCESSING",
    provider_payment_id: str | None = "pi_seeded",
    steps: list[tuple[TransactionType, str, str | None]] | None = None,
) -> Payment:
    """Insert a payment directly, with optional settlement steps.

    Each step is (type, status, external_id).
    """
    async with database.session() as session:
        payment = Payment(
            idempotency_key=str(uuid4()),
            vendor_id=vendor.id,
            source_amount=Decimal("1000"),
            source_currency="SGD",
            destination_amount=Decimal("740"),
            destination_currency="USD",
            exchange_rate=Decimal("0.74"),
            status=status,
            provider_payment_id=provider_payment_id,
        )
        session.add(payment)
        await session.flush()
        for tx_type, tx_status, external_id in steps or []:
            session.add(
                Transaction(
                    payment_id=payment.id,
                    sequence=tx_type.sequence,
                    type=tx_type.value,
                    status=tx_status,
                    amount=Decimal("740"),
                    currency="USD",
                    external_id=external_id,
                )
            )
        await session.flush()
    return payment
