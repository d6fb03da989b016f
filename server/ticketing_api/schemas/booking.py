"""Booking-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import BookingStatus
from .common import Money, Pagination


class CreateBookingRequest(BaseModel):
    """Request schema for booking a seat."""

    event_id: UUID = Field(..., description="Event to book")
    seat_id: UUID = Field(..., description="Seat to book")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: UUID = Field(..., description="Booking to cancel")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: UUID = Field(..., description="Booking to retrieve")


class ListBookingsRequest(BaseModel):
    """Request schema for listing the caller's bookings."""

    status: BookingStatus | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=50)


class AdminListBookingsRequest(BaseModel):
    """Request schema for listing all bookings (admin)."""

    status: BookingStatus | None = None
    event_id: UUID | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    user_id: str
    event_id: str
    seat_id: str
    status: BookingStatus
    total: Money = Field(..., description="Seat price snapshot")
    payment_ref: str | None = None
    created_at: datetime


class BookingList(BaseModel):
    """Paginated list of bookings."""

    items: list[Booking]
    pagination: Pagination
