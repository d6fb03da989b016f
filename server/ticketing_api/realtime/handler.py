"""Dispatch of inbound real-time messages for one connection."""

import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import ProblemDetailsException
from ..core.observability import metrics_collector
from ..models.venue import SeatStatus
from ..schemas.realtime import Envelope, EventRoomMessage, SeatActionMessage
from ..services.event_service import EventService
from ..services.venue_service import VenueService
from .hold_table import HoldTable
from .notifier import Connection, RoomNotifier, event_room

logger = logging.getLogger(__name__)

# Outbound message names
JOINED_EVENT = "joined-event"
SEAT_HOLD_SUCCESS = "seat-hold-success"
SEAT_HOLD_FAILED = "seat-hold-failed"
SEAT_RELEASE_SUCCESS = "seat-release-success"
BOOKING_CONFIRMED = "booking-confirmed"
SEAT_AVAILABILITY = "seat-availability"
ERROR = "error"


class RealtimeHandler:
    """
    Applies real-time messages to the hold table and the notifier.

    Replies and failures go to the originating connection only; room-wide
    announcements are sent by the hold table. ``handle`` never raises, so
    one bad message cannot break the connection loop.
    """

    def __init__(
        self,
        hold_table: HoldTable,
        notifier: RoomNotifier,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.hold_table = hold_table
        self.notifier = notifier
        self.session_factory = session_factory
        self._routes: dict[str, Callable[[str, Any], Awaitable[None]]] = {
            "join-event": self.join_event,
            "leave-event": self.leave_event,
            "hold-seat": self.hold_seat,
            "release-seat": self.release_seat,
            "confirm-booking": self.confirm_booking,
            "get-seat-availability": self.get_seat_availability,
        }

    async def connect(self, connection_id: str, connection: Connection) -> None:
        self.notifier.register(connection_id, connection)
        metrics_collector.set_realtime_connections(self.notifier.connection_count)
        logger.info("Real-time client connected", extra={"connection_id": connection_id})

    async def disconnect(self, connection_id: str) -> None:
        """Drop the connection's holds, then the connection itself."""
        released = await self.hold_table.release_all_for_connection(connection_id)
        self.notifier.unregister(connection_id)
        metrics_collector.set_realtime_connections(self.notifier.connection_count)
        logger.info(
            "Real-time client disconnected",
            extra={"connection_id": connection_id, "released_seats": len(released)}
        )

    async def handle(self, connection_id: str, raw: str | bytes | dict) -> None:
        """Parse one inbound message and dispatch it by event name."""
        try:
            if isinstance(raw, dict):
                envelope = Envelope.model_validate(raw)
            else:
                envelope = Envelope.model_validate_json(raw)
        except ValidationError:
            await self._error(connection_id, "Malformed message")
            return

        route = self._routes.get(envelope.event)
        if route is None:
            await self._error(connection_id, f"Unknown event '{envelope.event}'", envelope.event)
            return

        try:
            await route(connection_id, envelope.data)
        except ValidationError as e:
            await self._error(connection_id, f"Invalid payload: {e.error_count()} error(s)", envelope.event)
        except ProblemDetailsException as e:
            await self._error(connection_id, e.problem_details.get("detail", e.title), envelope.event)
        except Exception:
            logger.exception(
                "Real-time handler failed",
                extra={"connection_id": connection_id, "event": envelope.event}
            )
            await self._error(connection_id, "Internal error", envelope.event)

    async def join_event(self, connection_id: str, data: Any) -> None:
        message = EventRoomMessage.model_validate(data)
        self.notifier.join(connection_id, event_room(message.event_id))
        await self.notifier.send(connection_id, JOINED_EVENT, {"event_id": str(message.event_id)})

    async def leave_event(self, connection_id: str, data: Any) -> None:
        message = EventRoomMessage.model_validate(data)
        self.notifier.leave(connection_id, event_room(message.event_id))

    async def hold_seat(self, connection_id: str, data: Any) -> None:
        message = SeatActionMessage.model_validate(data)
        seat_key = str(message.seat_id)

        # Persisted status is checked outside any transaction with the hold
        async with self.session_factory() as db:
            seat = await VenueService(db).get_seat_by_id(message.seat_id)
            event = await EventService(db).get_event_by_id(message.event_id)
            seat_status = seat.status if seat else None
            seat_venue_id = seat.venue_id if seat else None
            event_venue_id = event.venue_id if event else None

        if seat_status != SeatStatus.AVAILABLE:
            await self.notifier.send(
                connection_id,
                SEAT_HOLD_FAILED,
                {"seat_id": seat_key, "error": "Seat is not available"},
            )
            return
        if event_venue_id is None or seat_venue_id != event_venue_id:
            await self.notifier.send(
                connection_id,
                SEAT_HOLD_FAILED,
                {"seat_id": seat_key, "error": "Seat is not part of this event"},
            )
            return

        result = await self.hold_table.acquire(message.seat_id, message.user_id, connection_id, message.event_id)
        if result.success:
            await self.notifier.send(connection_id, SEAT_HOLD_SUCCESS, {"seat_id": seat_key})
        else:
            await self.notifier.send(connection_id, SEAT_HOLD_FAILED, {"seat_id": seat_key, "error": result.reason})

    async def release_seat(self, connection_id: str, data: Any) -> None:
        message = SeatActionMessage.model_validate(data)
        released = await self.hold_table.release(
            message.seat_id, message.user_id, message.event_id, connection_id
        )
        if released:
            await self.notifier.send(connection_id, SEAT_RELEASE_SUCCESS, {"seat_id": str(message.seat_id)})

    async def confirm_booking(self, connection_id: str, data: Any) -> None:
        message = SeatActionMessage.model_validate(data)
        await self.hold_table.consume(message.seat_id, message.user_id, message.event_id, connection_id)
        await self.notifier.send(connection_id, BOOKING_CONFIRMED, {"seat_id": str(message.seat_id)})

    async def get_seat_availability(self, connection_id: str, data: Any) -> None:
        message = EventRoomMessage.model_validate(data)
        async with self.session_factory() as db:
            snapshot = await EventService(db).seat_availability(message.event_id, self.hold_table)
        await self.notifier.send(connection_id, SEAT_AVAILABILITY, snapshot.model_dump(mode="json"))

    async def _error(self, connection_id: str, error: str, event: str | None = None) -> None:
        payload: dict[str, Any] = {"error": error}
        if event:
            payload["event"] = event
        logger.info("Real-time message rejected", extra={"connection_id": connection_id, **payload})
        await self.notifier.send(connection_id, ERROR, payload)
