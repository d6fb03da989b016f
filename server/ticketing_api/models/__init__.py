"""Models module exporting all database models."""

from .booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, Payment, PaymentStatus
from .event import Event, EventStatus
from .user import User, UserRole
from .venue import Seat, SeatStatus, Venue

__all__ = [
    # Accounts
    "User",
    "UserRole",

    # Seat registry
    "Venue",
    "Seat",
    "SeatStatus",

    # Events
    "Event",
    "EventStatus",

    # Bookings and payments
    "Booking",
    "BookingStatus",
    "ACTIVE_BOOKING_STATUSES",
    "Payment",
    "PaymentStatus",
]
