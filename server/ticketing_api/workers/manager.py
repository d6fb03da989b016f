"""Worker manager for coordinating background tasks."""

import asyncio
import logging
from typing import Dict, Iterable

from .base import BaseWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Manages background workers for the application.

    Coordinates starting, stopping, and monitoring of all background workers.
    """

    def __init__(self, workers: Iterable[BaseWorker] = ()):
        self.workers: Dict[str, BaseWorker] = {}
        for worker in workers:
            self.register(worker)

    def register(self, worker: BaseWorker) -> None:
        """Add a worker, keyed by its name."""
        if worker.name in self.workers:
            raise ValueError(f"Worker {worker.name} is already registered")
        self.workers[worker.name] = worker

    async def start_all(self) -> None:
        """Start all workers."""
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error("Failed to start worker", exc_info=True, extra={"worker": name, "error": str(e)})

        logger.info("Workers started", extra={"count": len(self.workers)})

    async def stop_all(self) -> None:
        """Stop all running workers gracefully."""
        running = [worker for worker in self.workers.values() if worker.is_running]
        results = await asyncio.gather(*(worker.stop() for worker in running), return_exceptions=True)

        for worker, result in zip(running, results):
            if isinstance(result, Exception):
                logger.error("Error stopping worker", extra={"worker": worker.name, "error": str(result)})

        logger.info("Workers stopped", extra={"count": len(running)})

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """Map of worker name to running state."""
        return {name: worker.is_running for name, worker in self.workers.items()}
