"""Advisory, time-bounded seat holds shared by every real-time connection."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from ..core.observability import metrics_collector
from .leases import InMemoryLeaseStore, Lease, LeaseStore
from .notifier import RoomNotifier, event_room

logger = logging.getLogger(__name__)

DEFAULT_HOLD_TIMEOUT_SECONDS = 5 * 60

SEAT_HELD = "seat-held"
SEAT_RELEASED = "seat-released"
SEAT_BOOKED = "seat-booked"


@dataclass(frozen=True)
class HoldResult:
    """Outcome of an acquire attempt."""

    success: bool
    reason: str | None = None
    holder_id: str | None = None


@dataclass(frozen=True)
class HoldState:
    """Live hold state of one seat."""

    is_held: bool
    holder_id: str | None = None


class HoldTable:
    """
    In-memory map of seat -> holder used to show who is looking at a seat.

    Holds are advisory: they never gate the booking transaction, they only
    let clients avoid seats someone else is about to book. A hold lives
    until it is released, consumed by a booking, dropped with its
    connection, or swept after ``timeout_seconds``. Between sweeps an old
    hold is already treated as expired.

    All mutations run under one lock; notifications are sent after the lock
    is released.
    """

    def __init__(
        self,
        notifier: RoomNotifier,
        store: LeaseStore | None = None,
        timeout_seconds: float = DEFAULT_HOLD_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.notifier = notifier
        self.store = store if store is not None else InMemoryLeaseStore()
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self._lock = asyncio.Lock()

    async def acquire(
        self,
        seat_id: object,
        holder_id: str,
        connection_id: str | None,
        event_id: object,
    ) -> HoldResult:
        """
        Hold a seat for ``holder_id``.

        Re-acquiring a seat you already hold refreshes the timestamp. A seat
        held (and not expired) by someone else is rejected.
        """
        seat_key = str(seat_id)
        event_key = str(event_id)

        async with self._lock:
            now = self.clock()
            current = self.store.get(seat_key)
            if (
                current is not None
                and current.holder_id != holder_id
                and not current.is_expired(now, self.timeout_seconds)
            ):
                metrics_collector.record_hold_rejected()
                logger.info(
                    "Seat hold rejected",
                    extra={
                        "seat_id": seat_key,
                        "holder_id": holder_id,
                        "current_holder_id": current.holder_id,
                    }
                )
                return HoldResult(
                    success=False,
                    reason="Seat is already being held by another user",
                    holder_id=current.holder_id,
                )

            renewed = current is not None and current.holder_id == holder_id
            self.store.put(
                seat_key,
                Lease(
                    seat_id=seat_key,
                    holder_id=holder_id,
                    event_id=event_key,
                    connection_id=connection_id,
                    acquired_at=now,
                ),
            )

        if not renewed:
            metrics_collector.record_hold_acquired()
        logger.info(
            "Seat hold renewed" if renewed else "Seat held",
            extra={"seat_id": seat_key, "event_id": event_key, "holder_id": holder_id}
        )
        await self.notifier.broadcast(
            event_room(event_key),
            SEAT_HELD,
            {"seat_id": seat_key, "user_id": holder_id},
            exclude=connection_id,
        )
        return HoldResult(success=True, holder_id=holder_id)

    async def release(
        self,
        seat_id: object,
        holder_id: str,
        event_id: object | None = None,
        connection_id: str | None = None,
    ) -> bool:
        """
        Release a seat held by ``holder_id``.

        Releasing a seat held by someone else, or not held at all, is a no-op.

        Returns:
            True when a hold was removed
        """
        seat_key = str(seat_id)
        async with self._lock:
            current = self.store.get(seat_key)
            if current is None or current.holder_id != holder_id:
                return False
            self.store.delete(seat_key)

        logger.info("Seat released", extra={"seat_id": seat_key, "holder_id": holder_id})
        room_event = str(event_id) if event_id is not None else current.event_id
        await self.notifier.broadcast(
            event_room(room_event),
            SEAT_RELEASED,
            {"seat_id": seat_key},
            exclude=connection_id,
        )
        return True

    async def consume(
        self,
        seat_id: object,
        holder_id: str,
        event_id: object,
        connection_id: str | None = None,
    ) -> Lease | None:
        """
        Drop whatever hold exists on a seat because it is being booked.

        Announces ``seat-booked`` to the event room even when no hold existed.

        Returns:
            The removed lease, if there was one
        """
        seat_key = str(seat_id)
        async with self._lock:
            removed = self.store.delete(seat_key)

        logger.info(
            "Seat hold consumed by booking",
            extra={
                "seat_id": seat_key,
                "holder_id": holder_id,
                "had_hold": removed is not None,
            }
        )
        await self.notifier.broadcast(
            event_room(event_id),
            SEAT_BOOKED,
            {"seat_id": seat_key, "user_id": holder_id},
            exclude=connection_id,
        )
        return removed

    async def query(self, seat_ids: Iterable[object]) -> dict[str, HoldState]:
        """Snapshot of hold state for the given seats."""
        async with self._lock:
            now = self.clock()
            states = {}
            for seat_id in seat_ids:
                seat_key = str(seat_id)
                lease = self.store.get(seat_key)
                if lease is None or lease.is_expired(now, self.timeout_seconds):
                    states[seat_key] = HoldState(is_held=False)
                else:
                    states[seat_key] = HoldState(is_held=True, holder_id=lease.holder_id)
        return states

    async def sweep_expired(self, now: float | None = None) -> int:
        """
        Remove every hold older than the timeout.

        Returns:
            Number of holds removed
        """
        async with self._lock:
            if now is None:
                now = self.clock()
            expired = [
                lease
                for _, lease in self.store.items()
                if lease.is_expired(now, self.timeout_seconds)
            ]
            for lease in expired:
                self.store.delete(lease.seat_id)

        for lease in expired:
            metrics_collector.record_hold_expired()
            logger.info(
                "Seat hold expired",
                extra={
                    "seat_id": lease.seat_id,
                    "holder_id": lease.holder_id,
                    "age_seconds": round(lease.age(now), 3),
                }
            )
            await self.notifier.broadcast(
                event_room(lease.event_id),
                SEAT_RELEASED,
                {"seat_id": lease.seat_id},
            )
        return len(expired)

    async def release_all_for_connection(self, connection_id: str) -> list[str]:
        """
        Remove every hold owned by a connection that went away.

        Returns:
            Seat ids that were released
        """
        async with self._lock:
            owned = [
                lease
                for _, lease in self.store.items()
                if lease.connection_id == connection_id
            ]
            for lease in owned:
                self.store.delete(lease.seat_id)

        for lease in owned:
            logger.info(
                "Seat released due to disconnect",
                extra={"seat_id": lease.seat_id, "connection_id": connection_id}
            )
            await self.notifier.broadcast(
                event_room(lease.event_id),
                SEAT_RELEASED,
                {"seat_id": lease.seat_id},
                exclude=connection_id,
            )
        return [lease.seat_id for lease in owned]

    async def active_count(self) -> int:
        """Number of holds that have not expired yet."""
        async with self._lock:
            now = self.clock()
            return sum(
                1
                for _, lease in self.store.items()
                if not lease.is_expired(now, self.timeout_seconds)
            )
