"""Venue router for venue and seat registry administration."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import AdminAuth, DatabaseSession
from ..schemas.common import Money
from ..schemas.venue import (
    AddSeatsRequest,
    CreateVenueRequest,
    ListSeatsRequest,
    Seat,
    SeatList,
    UpdateSeatRequest,
    Venue,
)
from ..services.venue_service import VenueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/venue", tags=["venue"])


def _convert_venue_to_schema(venue_model) -> Venue:
    """Convert venue model to schema."""
    return Venue(
        id=str(venue_model.id),
        name=venue_model.name,
        address=venue_model.address,
        city=venue_model.city,
        state=venue_model.state,
        zip_code=venue_model.zip_code,
        capacity=venue_model.capacity,
    )


def _convert_seat_to_schema(seat_model) -> Seat:
    """Convert seat model to schema."""
    return Seat(
        id=str(seat_model.id),
        venue_id=str(seat_model.venue_id),
        section=seat_model.section,
        row=seat_model.row,
        number=seat_model.number,
        price=Money(amount=seat_model.price_amount, currency=seat_model.price_currency),
        status=seat_model.status,
    )


@router.post("/create", response_model=Venue, status_code=status.HTTP_201_CREATED)
async def create_venue(
    request: CreateVenueRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
) -> JSONResponse:
    """Create a venue (admin)."""
    venue = await VenueService(db).create_venue(request)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=_convert_venue_to_schema(venue).model_dump(mode="json"),
    )


@router.post("/add-seats", response_model=SeatList, status_code=status.HTTP_201_CREATED)
async def add_seats(
    request: AddSeatsRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
) -> JSONResponse:
    """
    Bulk-create seats in a venue (admin).

    Fails with 409 if any section/row/number position already exists.
    """
    seats = await VenueService(db).add_seats(request)
    response_data = SeatList(items=[_convert_seat_to_schema(seat) for seat in seats])
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=response_data.model_dump(mode="json"))


@router.post("/seats", response_model=SeatList)
async def list_seats(
    request: ListSeatsRequest,
    db: AsyncSession = DatabaseSession,
) -> JSONResponse:
    """List a venue's seats with their persisted status."""
    venue_service = VenueService(db)
    await venue_service.get_venue_by_id_or_raise(request.venue_id)
    seats = await venue_service.list_seats(request.venue_id)

    response_data = SeatList(items=[_convert_seat_to_schema(seat) for seat in seats])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/update-seat", response_model=Seat)
async def update_seat(
    request: UpdateSeatRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
) -> JSONResponse:
    """
    Change a seat's price or toggle maintenance (admin).

    Only AVAILABLE <-> MAINTENANCE status changes are accepted here.
    """
    seat = await VenueService(db).update_seat(request)

    logger.info(
        "Seat updated by administrator",
        extra={"seat_id": str(seat.id), "admin_id": user["user_id"], "status": seat.status}
    )
    return JSONResponse(status_code=200, content=_convert_seat_to_schema(seat).model_dump(mode="json"))
