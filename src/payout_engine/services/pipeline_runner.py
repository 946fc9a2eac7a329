"""Background execution of payment pipelines.

One asyncio task per payment id, bounded overall by a semaphore. The task
boundary is where pipeline errors stop: they are logged and turned into a
FAILED payment, never re-raised to whoever submitted the payment.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from uuid import UUID

from payout_engine.services.payment_pipeline import PipelineAborted

if TYPE_CHECKING:
    from payout_engine.services.payment_pipeline import PaymentPipeline

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Schedules pipelines keyed by payment id.

    At most one pipeline is active per payment: submitting a payment whose
    pipeline is still running returns the running task.
    """

    def __init__(
        self,
        pipeline: PaymentPipeline,
        max_concurrency: int = 10,
        shutdown_grace: float = 0.0,
    ):
        self.pipeline = pipeline
        self.shutdown_grace = shutdown_grace
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: dict[UUID, asyncio.Task[None]] = {}

    def submit(self, payment_id: UUID) -> asyncio.Task[None]:
        """Start the pipeline for payment_id unless it is already running."""
        existing = self._tasks.get(payment_id)
        if existing is not None and not existing.done():
            logger.debug("Pipeline for payment %s already running", payment_id)
            return existing

        task = asyncio.create_task(self._run(payment_id), name=f"payment-pipeline-{payment_id}")
        self._tasks[payment_id] = task
        task.add_done_callback(lambda t: self._forget(payment_id, t))
        logger.info("Pipeline submitted for payment %s", payment_id)
        return task

    def is_active(self, payment_id: UUID) -> bool:
        task = self._tasks.get(payment_id)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def wait(self, payment_id: UUID) -> None:
        """Wait for the pipeline of payment_id, if any, to finish."""
        task = self._tasks.get(payment_id)
        if task is not None:
            await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait for every submitted pipeline to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Give running pipelines the grace period to finish, then cancel the rest.

        A cancelled pipeline leaves its payment PROCESSING.
        """
        running = {pid: task for pid, task in self._tasks.items() if not task.done()}
        if running and self.shutdown_grace > 0:
            await asyncio.wait(list(running.values()), timeout=self.shutdown_grace)

        stranded = [pid for pid, task in running.items() if not task.done()]
        for pid in stranded:
            running[pid].cancel()
        if stranded:
            await asyncio.gather(*(running[pid] for pid in stranded), return_exceptions=True)
            logger.warning(
                "Pipeline runner stopped, %d payments left PROCESSING: %s",
                len(stranded),
                ", ".join(str(pid) for pid in stranded),
            )
        else:
            logger.info("Pipeline runner stopped")

    async def _run(self, payment_id: UUID) -> None:
        async with self._semaphore:
            try:
                await self.pipeline.process(payment_id)
            except PipelineAborted as e:
                logger.info("%s", e)
            except Exception as e:
                logger.exception("Pipeline for payment %s failed", payment_id)
                await self._mark_failed(payment_id, f"{type(e).__name__}: {e}")

    async def _mark_failed(self, payment_id: UUID, reason: str) -> None:
        try:
            await self.pipeline.fail(payment_id, reason)
        except Exception:
            logger.exception("Could not mark payment %s as failed", payment_id)

    def _forget(self, payment_id: UUID, task: asyncio.Task[None]) -> None:
        if self._tasks.get(payment_id) is task:
            del self._tasks[payment_id]
