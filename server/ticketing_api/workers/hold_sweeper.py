"""Background worker that expires stale advisory seat holds."""

import logging

from ..core.observability import metrics_collector
from ..realtime.hold_table import HoldTable
from .base import BaseWorker

logger = logging.getLogger(__name__)


class HoldSweeper(BaseWorker):
    """
    Periodically removes holds older than the hold timeout.

    Each removed hold is announced to its event room as ``seat-released``
    by the hold table. The schedule lives only in memory; holds are lost
    on restart anyway.
    """

    def __init__(self, hold_table: HoldTable, interval_seconds: float | None = None):
        """
        Initialize the hold sweeper.

        Args:
            hold_table: Hold table to sweep
            interval_seconds: Sweep interval, defaults to the hold timeout
        """
        super().__init__(
            name="HoldSweeper",
            interval_seconds=interval_seconds or hold_table.timeout_seconds,
        )
        self.hold_table = hold_table

    async def process(self) -> None:
        """Sweep expired holds once and refresh the active holds gauge."""
        now = self.hold_table.clock()
        expired_count = await self.hold_table.sweep_expired(now)
        active = await self.hold_table.active_count()
        metrics_collector.set_active_holds(active)

        if expired_count > 0:
            logger.info(
                "Expired seat holds",
                extra={"expired_count": expired_count, "active_holds": active, "worker": self.name}
            )
