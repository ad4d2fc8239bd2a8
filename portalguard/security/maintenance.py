"""
Periodic sweeping of rate limiter state.

The rate limiter never schedules itself. Applications that want the sweep
start a PeriodicCleanup alongside their event loop.
"""

import asyncio
import logging
from typing import Optional

from portalguard.config.settings import get_settings

from .rate_limiter import Duration, RateLimiter

logger = logging.getLogger(__name__)


class PeriodicCleanup:
    """Runs RateLimiter.cleanup on a fixed interval in a background task."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        interval_seconds: Optional[float] = None,
        max_age: Optional[Duration] = None
    ):
        """
        Initialize periodic cleanup.

        Args:
            rate_limiter: Limiter to sweep
            interval_seconds: Delay between sweeps (defaults to settings)
            max_age: Retention horizon passed to cleanup (defaults to settings)
        """
        defaults = get_settings().rate_limit_config()
        self.rate_limiter = rate_limiter
        self.interval_seconds = (
            defaults.cleanup_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.max_age = defaults.cleanup_max_age_seconds if max_age is None else max_age
        self._task: Optional[asyncio.Task] = None

        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Sweep now and return the number of entries removed."""
        return self.rate_limiter.cleanup(self.max_age)

    async def start(self) -> None:
        """Start the background sweep if it is not already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Rate limiter cleanup scheduled every {self.interval_seconds}s")

    async def stop(self) -> None:
        """Cancel the background sweep and wait for it to finish."""
        if self._task is None:
            return

        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            removed = self.run_once()
            logger.debug(f"Rate limiter sweep removed {removed} entries")

    async def __aenter__(self) -> "PeriodicCleanup":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
