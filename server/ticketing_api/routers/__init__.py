"""FastAPI routers package."""

from .booking import router as booking_router
from .event import router as event_router
from .health import router as health_router
from .metrics import router as metrics_router
from .payment import router as payment_router
from .realtime import router as realtime_router
from .venue import router as venue_router

__all__ = [
    "booking_router",
    "event_router",
    "health_router",
    "metrics_router",
    "payment_router",
    "realtime_router",
    "venue_router",
]
