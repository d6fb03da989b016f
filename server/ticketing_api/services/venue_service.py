"""Venue service: venue and seat registry administration."""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError, InvalidSeatTransitionError, SeatNotFoundError, VenueNotFoundError
from ..models.venue import Seat, SeatStatus, Venue
from ..schemas.venue import AddSeatsRequest, CreateVenueRequest, UpdateSeatRequest

logger = logging.getLogger(__name__)

# Status changes venue administration may make; everything else belongs to bookings
_ADMIN_SEAT_TRANSITIONS = {
    SeatStatus.MAINTENANCE: SeatStatus.AVAILABLE,
    SeatStatus.AVAILABLE: SeatStatus.MAINTENANCE,
}


class VenueService:
    """Service for venue and seat registry operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_venue(self, request: CreateVenueRequest) -> Venue:
        """Create a new venue."""
        venue = Venue(
            name=request.name,
            address=request.address,
            city=request.city,
            state=request.state,
            zip_code=request.zip_code,
            capacity=request.capacity,
        )
        self.db.add(venue)
        await self.db.commit()
        await self.db.refresh(venue)

        logger.info(
            "Venue created successfully",
            extra={"venue_id": str(venue.id), "name": venue.name, "city": venue.city}
        )
        return venue

    async def get_venue_by_id(self, venue_id: UUID) -> Venue | None:
        """Get venue by ID."""
        result = await self.db.execute(select(Venue).where(Venue.id == venue_id))
        return result.scalar_one_or_none()

    async def get_venue_by_id_or_raise(self, venue_id: UUID) -> Venue:
        """Get venue by ID or raise VenueNotFoundError."""
        venue = await self.get_venue_by_id(venue_id)
        if not venue:
            logger.warning("Venue not found", extra={"venue_id": str(venue_id)})
            raise VenueNotFoundError(str(venue_id))
        return venue

    async def add_seats(self, request: AddSeatsRequest) -> list[Seat]:
        """
        Bulk-create seats in a venue.

        Raises:
            VenueNotFoundError: If the venue does not exist
            ConflictError: If a section/row/number position already exists
        """
        await self.get_venue_by_id_or_raise(request.venue_id)

        positions = [(spec.section, spec.row, spec.number) for spec in request.seats]
        if len(set(positions)) != len(positions):
            raise ConflictError(
                detail="The request contains the same seat position more than once",
                code="DUPLICATE_SEAT",
            )

        seats = [
            Seat(
                venue_id=request.venue_id,
                section=spec.section,
                row=spec.row,
                number=spec.number,
                price_amount=spec.price.amount,
                price_currency=spec.price.currency,
                status=SeatStatus.AVAILABLE,
            )
            for spec in request.seats
        ]
        self.db.add_all(seats)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                "Seat creation failed - position already exists",
                extra={"venue_id": str(request.venue_id), "seat_count": len(seats)}
            )
            raise ConflictError(
                detail="Some seats already exist with the same section, row, and number",
                conflicting_resource={"venue_id": str(request.venue_id)},
                code="DUPLICATE_SEAT",
            )

        logger.info(
            "Seats created successfully",
            extra={"venue_id": str(request.venue_id), "seat_count": len(seats)}
        )
        return seats

    async def list_seats(self, venue_id: UUID) -> list[Seat]:
        """List a venue's seats ordered by position."""
        stmt = (
            select(Seat)
            .where(Seat.venue_id == venue_id)
            .order_by(Seat.section, Seat.row, Seat.number)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_seat_by_id(self, seat_id: UUID) -> Seat | None:
        """Get a seat by ID, always re-reading its row from the database."""
        stmt = select(Seat).where(Seat.id == seat_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_seat_by_id_or_raise(self, seat_id: UUID) -> Seat:
        """Get seat by ID or raise SeatNotFoundError."""
        seat = await self.get_seat_by_id(seat_id)
        if not seat:
            logger.warning("Seat not found", extra={"seat_id": str(seat_id)})
            raise SeatNotFoundError(str(seat_id))
        return seat

    async def update_seat(self, request: UpdateSeatRequest) -> Seat:
        """
        Edit a seat's price or toggle it in and out of maintenance.

        Raises:
            SeatNotFoundError: If the seat does not exist
            InvalidSeatTransitionError: For any status change other than
                AVAILABLE <-> MAINTENANCE, or when the seat moved concurrently
        """
        seat = await self.get_seat_by_id_or_raise(request.seat_id)
        values: dict = {}

        if request.price is not None:
            values["price_amount"] = request.price.amount
            values["price_currency"] = request.price.currency

        expected_status = seat.status
        if request.status is not None and request.status != seat.status:
            if _ADMIN_SEAT_TRANSITIONS.get(SeatStatus(seat.status)) != request.status:
                raise InvalidSeatTransitionError(str(seat.id), seat.status, request.status)
            values["status"] = request.status

        if not values:
            return seat

        stmt = (
            update(Seat)
            .where(Seat.id == seat.id, Seat.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            current = await self.get_seat_by_id_or_raise(request.seat_id)
            raise InvalidSeatTransitionError(str(request.seat_id), current.status, request.status or current.status)

        await self.db.commit()

        logger.info(
            "Seat updated",
            extra={"seat_id": str(request.seat_id), "changes": {k: str(v) for k, v in values.items()}}
        )
        return await self.get_seat_by_id_or_raise(request.seat_id)
