"""
Webhook event scheduler.

Runs the event processor once at startup and then every interval.
"""

import asyncio
import logging
from typing import Optional

from .config import EventProcessorConfig
from .processor import WebhookEventProcessor

logger = logging.getLogger(__name__)


class WebhookEventScheduler:
    """
    Background task runner for webhook event processing.

    Call `start()` to begin processing.
    Call `stop()` to gracefully stop.

    Usage:
        scheduler = WebhookEventScheduler(processor, interval_seconds=30)
        await scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    def __init__(
        self,
        processor: WebhookEventProcessor,
        interval_seconds: float = EventProcessorConfig.DEFAULT_INTERVAL_SECONDS,
    ):
        self.processor = processor
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the processing loop. No-op if already running."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Webhook event processor started (every {self.interval_seconds}s)")

    async def stop(self):
        """Stop the processing loop, cancelling any run in flight."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Webhook event processor stopped")

    async def _run_loop(self):
        while self._running:
            try:
                await self.processor.run()
            except Exception as e:
                logger.error(f"Webhook processing run error: {e}")

            await asyncio.sleep(self.interval_seconds)
