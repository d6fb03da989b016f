"""Service layer package."""

from .booking_service import BookingService
from .event_service import EventService
from .payment_gateway import PaymentGateway, PaymentIntentInfo, RefundInfo, StripePaymentGateway
from .payment_service import PaymentService
from .venue_service import VenueService

__all__ = [
    "BookingService",
    "EventService",
    "PaymentService",
    "VenueService",

    # Payment gateway
    "PaymentGateway",
    "PaymentIntentInfo",
    "RefundInfo",
    "StripePaymentGateway",
]
