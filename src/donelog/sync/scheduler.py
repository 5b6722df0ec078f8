"""
Interval-driven automatic sync
"""

import asyncio
import logging
from typing import Optional, Callable

from .orchestrator import SyncOrchestrator
from .protocol import SyncResult

logger = logging.getLogger(__name__)


class AutoSyncScheduler:
    """
    Runs sync passes on a fixed interval.

    One pass runs at startup. With interval_minutes == 0 that is the only
    pass; otherwise a pass runs every interval until stopped. Failed or
    rejected passes are reported and the loop keeps going.

    Example:
        scheduler = AutoSyncScheduler(orchestrator, interval_minutes=15)
        stop = asyncio.Event()
        await scheduler.run(stop)
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval_minutes: float,
        on_result: Optional[Callable[[SyncResult], None]] = None,
    ):
        """
        Args:
            orchestrator: Orchestrator with a local log attached
            interval_minutes: Minutes between passes (0 = startup only)
            on_result: Optional callback invoked after every pass
        """
        if interval_minutes < 0:
            raise ValueError(f"interval_minutes must be >= 0, got {interval_minutes}")

        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.on_result = on_result
        self.pass_count = 0

    async def _run_once(self) -> SyncResult:
        try:
            result = await self.orchestrator.sync_local()
        except Exception as e:
            logger.error(f"Scheduled sync raised: {e}", exc_info=True)
            result = SyncResult.failure(f"Unexpected error: {e}")
        self.pass_count += 1

        if result.success:
            logger.info(f"Scheduled sync #{self.pass_count} succeeded")
        else:
            logger.warning(f"Scheduled sync #{self.pass_count} failed: {result.message}")

        if self.on_result:
            self.on_result(result)
        return result

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> int:
        """
        Run until stop_event is set (or once, for a zero interval).

        Returns:
            Number of passes attempted
        """
        stop_event = stop_event or asyncio.Event()

        await self._run_once()
        if self.interval_minutes == 0:
            return self.pass_count

        interval = self.interval_minutes * 60
        logger.info(f"Auto-sync every {self.interval_minutes:g} minute(s)")

        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                await self._run_once()

        logger.info(f"Auto-sync stopped after {self.pass_count} pass(es)")
        return self.pass_count
