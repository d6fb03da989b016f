"""Base worker class for periodic background tasks."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for background workers.

    Runs ``process`` every ``interval_seconds`` on its own asyncio task
    between ``start`` and ``stop``. A failing iteration is logged and the
    loop carries on at the next interval.
    """

    def __init__(self, name: str, interval_seconds: float = 60):
        """
        Initialize the worker.

        Args:
            name: Worker name for logging
            interval_seconds: How often to run the task
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @abstractmethod
    async def process(self) -> None:
        """Process one iteration of the background task."""

    async def start(self) -> None:
        """Start the worker."""
        if self._running:
            logger.warning("Worker is already running", extra={"worker": self.name})
            return

        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"worker-{self.name}")
        logger.info(
            "Worker started",
            extra={"worker": self.name, "interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the worker, cancelling a sleeping or in-flight iteration."""
        if not self._running:
            logger.warning("Worker is not running", extra={"worker": self.name})
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Worker stopped", extra={"worker": self.name})

    async def _run(self) -> None:
        """Main worker loop."""
        while self._running:
            start_time = time.monotonic()
            try:
                await self.process()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Worker iteration failed",
                    exc_info=True,
                    extra={"worker": self.name, "error": str(e)}
                )

            duration = time.monotonic() - start_time
            logger.debug(
                "Worker iteration completed",
                extra={"worker": self.name, "duration_seconds": round(duration, 4)}
            )

            # Sleep for the remaining interval time
            await asyncio.sleep(max(0.0, self.interval_seconds - duration))
