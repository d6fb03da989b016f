"""Event router for event operations and seat availability."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession, HoldTableDependency
from ..realtime.hold_table import HoldTable
from ..schemas.event import (
    CreateEventRequest,
    Event,
    GetEventRequest,
    SeatAvailabilityResponse,
    UpdateEventStatusRequest,
)
from ..services.event_service import EventService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/event", tags=["event"])


def _convert_event_to_schema(event_model) -> Event:
    """Convert event model to schema."""
    return Event(
        id=str(event_model.id),
        venue_id=str(event_model.venue_id),
        title=event_model.title,
        description=event_model.description,
        starts_at=event_model.starts_at,
        status=event_model.status,
    )


@router.post("/create", response_model=Event, status_code=status.HTTP_201_CREATED)
async def create_event(
    request: CreateEventRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
) -> JSONResponse:
    """Create an event at an existing venue (admin)."""
    event = await EventService(db).create_event(request)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=_convert_event_to_schema(event).model_dump(mode="json"),
    )


@router.post("/get", response_model=Event)
async def get_event(
    request: GetEventRequest,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """Get an event by ID."""
    event = await EventService(db).get_event_by_id_or_raise(request.event_id)
    return JSONResponse(status_code=200, content=_convert_event_to_schema(event).model_dump(mode="json"))


@router.post("/update-status", response_model=Event)
async def update_event_status(
    request: UpdateEventStatusRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
) -> JSONResponse:
    """Move an event to a new lifecycle status (admin)."""
    event = await EventService(db).update_event_status(request)
    return JSONResponse(status_code=200, content=_convert_event_to_schema(event).model_dump(mode="json"))


@router.post("/seat-availability", response_model=SeatAvailabilityResponse)
async def seat_availability(
    request: GetEventRequest,
    db: AsyncSession = DatabaseSession,
    hold_table: HoldTable = HoldTableDependency,
) -> JSONResponse:
    """
    Seat map of an event.

    Each seat carries its persisted status plus whether someone currently
    holds it over the real-time channel.
    """
    snapshot = await EventService(db).seat_availability(request.event_id, hold_table)

    logger.debug(
        "Seat availability requested",
        extra={"event_id": str(request.event_id), "seat_count": len(snapshot.seats)}
    )
    return JSONResponse(status_code=200, content=snapshot.model_dump(mode="json"))
