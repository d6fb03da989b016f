"""Background workers for the ticketing service."""

from .base import BaseWorker
from .hold_sweeper import HoldSweeper
from .manager import WorkerManager

__all__ = ["BaseWorker", "HoldSweeper", "WorkerManager"]
