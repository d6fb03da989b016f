"""Real-time seat holds and room notifications."""

from .hold_table import HoldResult, HoldState, HoldTable
from .leases import InMemoryLeaseStore, Lease, LeaseStore
from .notifier import RoomNotifier, event_room

__all__ = [
    "HoldTable",
    "HoldResult",
    "HoldState",
    "Lease",
    "LeaseStore",
    "InMemoryLeaseStore",
    "RoomNotifier",
    "event_room",
]
