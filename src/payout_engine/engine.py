"""Payout engine facade - wires the services together.

Usage:
    engine = PayoutEngine.build(settings)

    # Create a payee
    vendor = await engine.vendors.create_vendor(...)

    # Start a payment; settlement continues in the background
    result = await engine.payments.initiate(vendor_id=vendor.id, source_amount=...)

    # Apply a provider webhook
    outcome = await engine.webhooks.ingest(raw_body, signature)

    await engine.close()

One instance per process (or per test). Nothing here is a module-level
singleton; the API stores its instance on app.state.
"""

from __future__ import annotations

from dataclasses import dataclass

from payout_engine.config import Settings
from payout_engine.database import Database
from payout_engine.providers import SandboxSettlementProvider, SettlementProvider
from payout_engine.services.payment_pipeline import PaymentPipeline
from payout_engine.services.payment_service import PaymentService
from payout_engine.services.pipeline_runner import PipelineRunner
from payout_engine.services.rates import RateProvider, StaticRateProvider
from payout_engine.services.vendor_service import VendorService
from payout_engine.services.webhook_reconciler import WebhookReconciler


@dataclass
class PayoutEngine:
    """Explicitly constructed service graph."""

    settings: Settings
    database: Database
    rates: RateProvider
    provider: SettlementProvider
    pipeline: PaymentPipeline
    runner: PipelineRunner
    payments: PaymentService
    vendors: VendorService
    webhooks: WebhookReconciler

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        database: Database | None = None,
        provider: SettlementProvider | None = None,
        rates: RateProvider | None = None,
    ) -> PayoutEngine:
        """Build the graph, using sandbox/static defaults for what is not given."""
        database = database or Database(settings.database_url, echo=settings.debug)
        provider = provider or SandboxSettlementProvider(
            confirmation_delay=settings.confirmation_delay_seconds
        )
        rates = rates or StaticRateProvider()
        pipeline = PaymentPipeline(database, provider, rates, settings)
        runner = PipelineRunner(
            pipeline,
            max_concurrency=settings.pipeline_concurrency,
            shutdown_grace=settings.shutdown_grace_seconds,
        )
        return cls(
            settings=settings,
            database=database,
            rates=rates,
            provider=provider,
            pipeline=pipeline,
            runner=runner,
            payments=PaymentService(database, rates, settings, runner),
            vendors=VendorService(database),
            webhooks=WebhookReconciler(database, settings),
        )

    async def close(self) -> None:
        """Stop background pipelines and release connections."""
        await self.runner.shutdown()
        await self.database.dispose()
