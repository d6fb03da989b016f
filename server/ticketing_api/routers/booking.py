"""Booking router for seat booking operations."""

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import (
    AdminAuth,
    DatabaseSession,
    HoldTableDependency,
    NotifierDependency,
    RequiredAuth,
    is_admin,
    user_uuid,
)
from ..core.exceptions import ProblemDetailsException
from ..realtime.hold_table import SEAT_RELEASED, HoldTable
from ..realtime.notifier import RoomNotifier, event_room
from ..schemas.booking import (
    AdminListBookingsRequest,
    Booking,
    BookingList,
    CancelBookingRequest,
    CreateBookingRequest,
    GetBookingRequest,
    ListBookingsRequest,
)
from ..schemas.common import Money, Pagination
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])


def convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=str(booking_model.id),
        user_id=str(booking_model.user_id),
        event_id=str(booking_model.event_id),
        seat_id=str(booking_model.seat_id),
        status=booking_model.status,
        total=Money(amount=booking_model.total_amount, currency=booking_model.currency),
        payment_ref=booking_model.payment_ref,
        created_at=booking_model.created_at,
    )


@router.post("/create", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    hold_table: HoldTable = HoldTableDependency,
) -> JSONResponse:
    """
    Book a seat for the authenticated user.

    The seat is reserved and a PENDING booking is created in one
    transaction. Any advisory hold on the seat is then consumed and the
    event room is told the seat is booked.
    """
    user_id = user_uuid(user)

    try:
        booking = await BookingService(db).create_booking(user_id, request.event_id, request.seat_id)
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "user_id": str(user_id),
                "event_id": str(request.event_id),
                "seat_id": str(request.seat_id),
                "error": str(e),
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error")

    await hold_table.consume(request.seat_id, str(user_id), request.event_id)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=convert_booking_to_schema(booking).model_dump(mode="json"),
    )


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """Get a booking owned by the caller (admins may read any booking)."""
    booking = await BookingService(db).get_booking(request.booking_id, user_uuid(user), is_admin(user))
    return JSONResponse(status_code=200, content=convert_booking_to_schema(booking).model_dump(mode="json"))


@router.post("/list", response_model=BookingList)
async def list_bookings(
    request: ListBookingsRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
) -> JSONResponse:
    """List the caller's bookings, newest first."""
    items, total = await BookingService(db).list_bookings(
        user_uuid(user), status=request.status, page=request.page, limit=request.limit
    )
    response_data = BookingList(
        items=[convert_booking_to_schema(booking) for booking in items],
        pagination=Pagination.build(request.page, request.limit, total),
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/admin-list", response_model=BookingList)
async def admin_list_bookings(
    request: AdminListBookingsRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
) -> JSONResponse:
    """List all bookings, optionally filtered by status and event (admin)."""
    items, total = await BookingService(db).list_all_bookings(
        status=request.status, event_id=request.event_id, page=request.page, limit=request.limit
    )
    response_data = BookingList(
        items=[convert_booking_to_schema(booking) for booking in items],
        pagination=Pagination.build(request.page, request.limit, total),
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    notifier: RoomNotifier = NotifierDependency,
) -> JSONResponse:
    """
    Cancel a PENDING booking.

    The seat goes back on sale and the event room is told it was released.
    Paid bookings are refunded instead.
    """
    actor_id = user_uuid(user)

    try:
        booking = await BookingService(db).cancel_booking(request.booking_id, actor_id, is_admin(user))
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in booking cancellation",
            extra={"booking_id": str(request.booking_id), "actor_id": str(actor_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error")

    await notifier.broadcast(event_room(booking.event_id), SEAT_RELEASED, {"seat_id": str(booking.seat_id)})

    return JSONResponse(status_code=200, content=convert_booking_to_schema(booking).model_dump(mode="json"))
