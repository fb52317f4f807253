"""
Coach API - Quota Sweeper

Background task that periodically removes stale quota records.
"""

import asyncio
import os
from typing import Optional

from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from .tracker import QuotaTracker


logger = get_logger(__name__)

DEFAULT_CLEANUP_INTERVAL = 3600


def cleanup_interval_from_env() -> float:
    raw = os.getenv("QUOTA_CLEANUP_INTERVAL", "")
    if not raw.strip():
        return DEFAULT_CLEANUP_INTERVAL
    value = float(raw)
    if value <= 0:
        raise ValueError("QUOTA_CLEANUP_INTERVAL must be positive")
    return value


class QuotaSweeper:
    """Calls tracker.cleanup_stale_quotas() every `interval` seconds."""

    def __init__(self, tracker: QuotaTracker, interval: float = DEFAULT_CLEANUP_INTERVAL):
        self.tracker = tracker
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        """Run a single cleanup pass and update gauges."""
        removed = await self.tracker.cleanup_stale_quotas()
        metrics = get_metrics()
        metrics.record_quota_sweep(removed)
        metrics.set_tracked_principals(await self.tracker.tracked_principals())
        return removed

    async def start(self):
        """Start the background sweep loop."""
        if self.running:
            return

        async def sweep_loop():
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.sweep_once()
                except Exception as e:
                    logger.error("Quota sweep failed", error=str(e))

        self._task = asyncio.create_task(sweep_loop())
        logger.info("Quota sweeper started", interval_seconds=self.interval)

    async def stop(self):
        """Stop the background sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Quota sweeper stopped")
