"""Event service: event lifecycle and seat availability snapshots."""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError, EventNotFoundError
from ..models.event import Event, EventStatus
from ..schemas.common import Money
from ..schemas.event import (
    CreateEventRequest,
    SeatAvailability,
    SeatAvailabilityResponse,
    UpdateEventStatusRequest,
)
from .venue_service import VenueService

if TYPE_CHECKING:
    from ..realtime.hold_table import HoldTable

logger = logging.getLogger(__name__)

# Events in these states never change again
_FINAL_EVENT_STATUSES = (EventStatus.COMPLETED, EventStatus.CANCELLED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def event_has_started(event: Event, now: datetime) -> bool:
    """An event counts as started (or passed) once its start time is reached."""
    return as_utc(event.starts_at) <= as_utc(now)


class EventService:
    """Service for event operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_event(self, request: CreateEventRequest) -> Event:
        """
        Create an event at an existing venue.

        Raises:
            VenueNotFoundError: If the venue does not exist
        """
        await VenueService(self.db).get_venue_by_id_or_raise(request.venue_id)

        event = Event(
            venue_id=request.venue_id,
            title=request.title,
            description=request.description,
            starts_at=as_utc(request.starts_at),
            status=EventStatus.UPCOMING,
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)

        logger.info(
            "Event created successfully",
            extra={
                "event_id": str(event.id),
                "venue_id": str(event.venue_id),
                "starts_at": event.starts_at.isoformat(),
            }
        )
        return event

    async def get_event_by_id(self, event_id: UUID) -> Event | None:
        """Get event by ID."""
        stmt = select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_event_by_id_or_raise(self, event_id: UUID) -> Event:
        """Get event by ID or raise EventNotFoundError."""
        event = await self.get_event_by_id(event_id)
        if not event:
            logger.warning("Event not found", extra={"event_id": str(event_id)})
            raise EventNotFoundError(str(event_id))
        return event

    async def update_event_status(self, request: UpdateEventStatusRequest) -> Event:
        """
        Move an event to a new lifecycle status.

        Raises:
            EventNotFoundError: If the event does not exist
            ConflictError: If the event is already COMPLETED or CANCELLED
        """
        event = await self.get_event_by_id_or_raise(request.event_id)
        if event.status == request.status:
            return event

        if event.status in _FINAL_EVENT_STATUSES:
            raise ConflictError(
                detail=f"Event {event.id} is {event.status} and can no longer change status",
                conflicting_resource={"event_id": str(event.id), "status": event.status},
                code="INVALID_EVENT_TRANSITION",
            )

        previous = event.status
        event.status = request.status
        await self.db.commit()
        await self.db.refresh(event)

        logger.info(
            "Event status updated",
            extra={"event_id": str(event.id), "from_status": previous, "to_status": event.status}
        )
        return event

    async def seat_availability(self, event_id: UUID, hold_table: "HoldTable") -> SeatAvailabilityResponse:
        """
        Seats of the event's venue with their persisted status and live hold state.

        Raises:
            EventNotFoundError: If the event does not exist
        """
        event = await self.get_event_by_id_or_raise(event_id)
        seats = await VenueService(self.db).list_seats(event.venue_id)
        holds = await hold_table.query(seat.id for seat in seats)

        items = []
        for seat in seats:
            hold = holds[str(seat.id)]
            items.append(
                SeatAvailability(
                    id=str(seat.id),
                    section=seat.section,
                    row=seat.row,
                    number=seat.number,
                    price=Money(amount=seat.price_amount, currency=seat.price_currency),
                    status=seat.status,
                    is_held=hold.is_held,
                    held_by=hold.holder_id,
                )
            )

        return SeatAvailabilityResponse(event_id=str(event.id), seats=items)
