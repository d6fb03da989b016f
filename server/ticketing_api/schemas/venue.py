"""Venue and seat Pydantic schemas."""

from pydantic import BaseModel, Field
from uuid import UUID

from ..models.venue import SeatStatus
from .common import Money


class CreateVenueRequest(BaseModel):
    """Request schema for creating a venue."""

    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    capacity: int = Field(..., ge=1, description="Nominal venue capacity")


class SeatSpec(BaseModel):
    """One seat to create in a venue."""

    section: str = Field(..., min_length=1, max_length=50)
    row: str = Field(..., min_length=1, max_length=10)
    number: int = Field(..., ge=1)
    price: Money


class AddSeatsRequest(BaseModel):
    """Request schema for bulk-creating seats in a venue."""

    venue_id: UUID
    seats: list[SeatSpec] = Field(..., min_length=1, max_length=5000)


class ListSeatsRequest(BaseModel):
    """Request schema for listing the seats of a venue."""

    venue_id: UUID


class UpdateSeatRequest(BaseModel):
    """Request schema for venue administration of a single seat."""

    seat_id: UUID
    price: Money | None = Field(None, description="New seat price")
    status: SeatStatus | None = Field(None, description="AVAILABLE or MAINTENANCE")


class Venue(BaseModel):
    """Venue response schema."""

    id: str
    name: str
    address: str
    city: str
    state: str
    zip_code: str
    capacity: int


class Seat(BaseModel):
    """Seat response schema."""

    id: str
    venue_id: str
    section: str
    row: str
    number: int
    price: Money
    status: SeatStatus


class SeatList(BaseModel):
    """List of seats."""

    items: list[Seat]
