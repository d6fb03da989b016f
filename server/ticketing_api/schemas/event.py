"""Event-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.event import EventStatus
from .common import Money
from ..models.venue import SeatStatus


class CreateEventRequest(BaseModel):
    """Request schema for creating an event."""

    venue_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    starts_at: datetime = Field(..., description="Event start time (ISO 8601)")


class GetEventRequest(BaseModel):
    """Request schema for getting an event."""

    event_id: UUID


class UpdateEventStatusRequest(BaseModel):
    """Request schema for changing an event's status."""

    event_id: UUID
    status: EventStatus


class Event(BaseModel):
    """Event response schema."""

    id: str
    venue_id: str
    title: str
    description: str | None = None
    starts_at: datetime
    status: EventStatus


class SeatAvailability(BaseModel):
    """Seat with its persisted status and live advisory hold state."""

    id: str
    section: str
    row: str
    number: int
    price: Money
    status: SeatStatus
    is_held: bool = Field(..., description="An unexpired advisory hold exists")
    held_by: str | None = Field(None, description="Holder of the advisory hold")


class SeatAvailabilityResponse(BaseModel):
    """Seat availability snapshot for an event."""

    event_id: str
    seats: list[SeatAvailability]
