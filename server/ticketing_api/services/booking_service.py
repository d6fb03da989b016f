"""Booking service: the transactional seat reservation flow."""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import (
    AccessDeniedError,
    BookingNotFoundError,
    DuplicateBookingError,
    EventAlreadyStartedError,
    EventCancelledError,
    EventPassedError,
    InvalidSeatTransitionError,
    NotCancellableError,
    ProblemDetailsException,
    SeatUnavailableError,
    SeatVenueMismatchError,
)
from ..core.observability import metrics_collector
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from ..models.event import EventStatus
from ..models.venue import Seat, SeatStatus
from .event_service import EventService, as_utc, event_has_started, utcnow
from .venue_service import VenueService

logger = logging.getLogger(__name__)


async def transition_booking(
    db: AsyncSession,
    booking_id: UUID,
    expected: BookingStatus,
    new: BookingStatus,
    **values,
) -> bool:
    """
    Compare-and-swap a booking's status inside the current transaction.

    Returns:
        False when the booking was not in ``expected`` status
    """
    stmt = (
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == expected)
        .values(status=new, **values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def transition_seat(db: AsyncSession, seat_id: UUID, expected: SeatStatus, new: SeatStatus) -> None:
    """
    Compare-and-swap a seat's status inside the current transaction.

    On a miss the whole transaction is rolled back.

    Raises:
        InvalidSeatTransitionError: If the seat was not in ``expected`` status
    """
    stmt = (
        update(Seat)
        .where(Seat.id == seat_id, Seat.status == expected)
        .values(status=new)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 1:
        return

    await db.rollback()
    current = await VenueService(db).get_seat_by_id(seat_id)
    current_status = current.status if current else "MISSING"
    logger.error(
        "Seat status out of step with booking",
        extra={"seat_id": str(seat_id), "expected": expected, "actual": current_status, "requested": new}
    )
    raise InvalidSeatTransitionError(str(seat_id), current_status, new)


def _rejected(error: ProblemDetailsException) -> ProblemDetailsException:
    metrics_collector.record_booking_conflict(error.code or "CONFLICT")
    return error


class BookingService:
    """
    Sole writer of booking status and of the seat sale status.

    Every transition is a conditional UPDATE on the expected current status.
    When a concurrent writer got there first the UPDATE matches no row and
    the transaction is rolled back, so two callers can never both reserve
    the same seat.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.event_service = EventService(db)
        self.venue_service = VenueService(db)

    async def create_booking(self, user_id: UUID, event_id: UUID, seat_id: UUID) -> Booking:
        """
        Reserve a seat for a user and create a PENDING booking.

        Advisory holds are not consulted; the caller consumes any hold on
        the seat once this returns.

        Args:
            user_id: Booking owner
            event_id: Event being booked
            seat_id: Seat being booked

        Returns:
            Created booking entity

        Raises:
            EventNotFoundError: If the event does not exist
            EventCancelledError: If the event is cancelled
            EventPassedError: If the event has already started
            SeatNotFoundError: If the seat does not exist
            SeatUnavailableError: If the seat is not AVAILABLE, including
                when a concurrent booking reserved it first
            SeatVenueMismatchError: If the seat is not in the event's venue
            DuplicateBookingError: If the user already has an active
                booking for the event
        """
        event = await self.event_service.get_event_by_id_or_raise(event_id)
        if event.status == EventStatus.CANCELLED:
            raise EventCancelledError(str(event_id))
        if event_has_started(event, self.clock()):
            raise EventPassedError(str(event_id), as_utc(event.starts_at))

        seat = await self.venue_service.get_seat_by_id_or_raise(seat_id)
        if seat.status != SeatStatus.AVAILABLE:
            logger.warning(
                "Booking rejected - seat not available",
                extra={"seat_id": str(seat_id), "seat_status": seat.status, "user_id": str(user_id)}
            )
            raise _rejected(SeatUnavailableError(str(seat_id), seat.status))
        if seat.venue_id != event.venue_id:
            raise SeatVenueMismatchError(str(seat_id), str(event_id))

        existing = await self.get_active_booking(user_id, event_id)
        if existing:
            logger.warning(
                "Booking rejected - user already has an active booking",
                extra={"user_id": str(user_id), "event_id": str(event_id), "booking_id": str(existing.id)}
            )
            raise _rejected(DuplicateBookingError(str(user_id), str(event_id), str(existing.id)))

        price_amount = seat.price_amount
        currency = seat.price_currency

        # Seat reservation and booking insert commit together or not at all
        reserve = (
            update(Seat)
            .where(Seat.id == seat_id, Seat.status == SeatStatus.AVAILABLE)
            .values(status=SeatStatus.RESERVED)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(reserve)
        if result.rowcount != 1:
            await self.db.rollback()
            logger.warning(
                "Booking lost the race for the seat",
                extra={"seat_id": str(seat_id), "user_id": str(user_id)}
            )
            raise _rejected(SeatUnavailableError(str(seat_id)))

        booking = Booking(
            user_id=user_id,
            event_id=event_id,
            seat_id=seat_id,
            status=BookingStatus.PENDING,
            total_amount=price_amount,
            currency=currency,
        )
        self.db.add(booking)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_active_booking(user_id, event_id)
            if existing:
                raise _rejected(DuplicateBookingError(str(user_id), str(event_id), str(existing.id)))
            raise _rejected(SeatUnavailableError(str(seat_id)))

        await self.db.refresh(booking)
        metrics_collector.record_booking_created()

        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "user_id": str(user_id),
                "event_id": str(event_id),
                "seat_id": str(seat_id),
                "total_amount": price_amount,
            }
        )
        return booking

    async def cancel_booking(self, booking_id: UUID, actor_id: UUID, actor_is_admin: bool = False) -> Booking:
        """
        Cancel a PENDING booking and put its seat back on sale.

        Raises:
            BookingNotFoundError: If the booking does not exist
            AccessDeniedError: If the actor is neither the owner nor an admin
            NotCancellableError: If the booking is not PENDING
            EventAlreadyStartedError: If the event has already started
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        if booking.user_id != actor_id and not actor_is_admin:
            raise AccessDeniedError(detail="Only the booking owner or an administrator can cancel this booking")

        if booking.status != BookingStatus.PENDING:
            raise _rejected(NotCancellableError(str(booking_id), booking.status))

        event = await self.event_service.get_event_by_id_or_raise(booking.event_id)
        if event_has_started(event, self.clock()):
            raise _rejected(EventAlreadyStartedError(str(event.id)))

        seat_id = booking.seat_id

        if not await transition_booking(self.db, booking_id, BookingStatus.PENDING, BookingStatus.CANCELLED):
            await self.db.rollback()
            current = await self.get_booking_by_id_or_raise(booking_id)
            raise _rejected(NotCancellableError(str(booking_id), current.status))
        await transition_seat(self.db, seat_id, SeatStatus.RESERVED, SeatStatus.AVAILABLE)
        await self.db.commit()

        metrics_collector.record_booking_cancelled()
        logger.info(
            "Booking cancelled successfully",
            extra={
                "booking_id": str(booking_id),
                "seat_id": str(seat_id),
                "actor_id": str(actor_id),
                "by_admin": actor_is_admin and booking.user_id != actor_id,
            }
        )
        return await self.get_booking_by_id_or_raise(booking_id)

    async def get_booking(self, booking_id: UUID, actor_id: UUID, actor_is_admin: bool = False) -> Booking:
        """
        Get a booking visible to the actor.

        Raises:
            BookingNotFoundError: If the booking does not exist
            AccessDeniedError: If the actor is neither the owner nor an admin
        """
        booking = await self.get_booking_by_id_or_raise(booking_id)
        if booking.user_id != actor_id and not actor_is_admin:
            raise AccessDeniedError(detail="Only the booking owner or an administrator can view this booking")
        return booking

    async def list_bookings(
        self,
        user_id: UUID,
        status: BookingStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """List a user's bookings, newest first. Returns the page and the total count."""
        filters = [Booking.user_id == user_id]
        if status is not None:
            filters.append(Booking.status == status)
        return await self._paginate(filters, page, limit)

    async def list_all_bookings(
        self,
        status: BookingStatus | None = None,
        event_id: UUID | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Booking], int]:
        """List every booking (admin), optionally filtered by status and event."""
        filters = []
        if status is not None:
            filters.append(Booking.status == status)
        if event_id is not None:
            filters.append(Booking.event_id == event_id)
        return await self._paginate(filters, page, limit)

    async def _paginate(self, filters: list, page: int, limit: int) -> tuple[list[Booking], int]:
        count_stmt = select(func.count()).select_from(Booking).where(*filters)
        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            select(Booking)
            .where(*filters)
            .order_by(Booking.created_at.desc(), Booking.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars()), total

    async def get_active_booking(self, user_id: UUID, event_id: UUID) -> Booking | None:
        """Get the user's PENDING or CONFIRMED booking for an event, if any."""
        stmt = select(Booking).where(
            Booking.user_id == user_id,
            Booking.event_id == event_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        """Get booking by ID."""
        stmt = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        """Get booking by ID or raise BookingNotFoundError."""
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": str(booking_id)})
            raise BookingNotFoundError(str(booking_id))
        return booking
