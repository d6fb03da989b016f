"""Property-based tests for booking and seat status invariants."""

import asyncio

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ticketing_api.core.database import Base
from ticketing_api.core.exceptions import DuplicateBookingError, SeatUnavailableError
from ticketing_api.models import Booking, Seat
from ticketing_api.models.booking import ACTIVE_BOOKING_STATUSES
from ticketing_api.models.venue import SeatStatus
from ticketing_api.services.booking_service import BookingService

SEATS = 3

actions = st.lists(
    st.one_of(
        st.tuples(st.just("book"), st.sampled_from(["alice", "bob"]), st.integers(0, SEATS - 1)),
        st.tuples(st.just("cancel"), st.sampled_from(["alice", "bob"])),
    ),
    min_size=1,
    max_size=15,
)


async def check_invariants(session, catalog) -> None:
    seats = (await session.execute(
        select(Seat)
        .where(Seat.venue_id == catalog.venue_id)
        .execution_options(populate_existing=True)
    )).scalars().all()
    active = (await session.execute(
        select(Booking)
        .where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .execution_options(populate_existing=True)
    )).scalars().all()

    by_seat: dict = {}
    by_user: dict = {}
    for booking in active:
        by_seat.setdefault(booking.seat_id, []).append(booking)
        by_user.setdefault((booking.user_id, booking.event_id), []).append(booking)

    for seat in seats:
        holders = by_seat.get(seat.id, [])
        assert len(holders) <= 1
        expected = SeatStatus.RESERVED if holders else SeatStatus.AVAILABLE
        assert seat.status == expected
    assert all(len(bookings) == 1 for bookings in by_user.values())


@settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(script=actions)
def test_seat_status_always_matches_active_bookings(seeder, script):
    """A seat is RESERVED exactly when one active booking points at it; nobody holds two bookings."""

    async def run():
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

        try:
            async with factory() as session:
                catalog = await seeder(session, seat_count=SEATS)
                users = {"alice": catalog.alice_id, "bob": catalog.bob_id}
                service = BookingService(session)
                # user -> (booking id, seat index)
                model: dict[str, tuple] = {}

                for action in script:
                    if action[0] == "book":
                        _, name, seat_index = action
                        seat_taken = any(index == seat_index for _, index in model.values())
                        try:
                            booking = await service.create_booking(
                                users[name], catalog.event_id, catalog.seat_ids[seat_index]
                            )
                        except SeatUnavailableError:
                            assert seat_taken
                        except DuplicateBookingError:
                            assert name in model and not seat_taken
                        else:
                            assert name not in model and not seat_taken
                            model[name] = (booking.id, seat_index)
                    else:
                        _, name = action
                        if name in model:
                            booking_id, _ = model.pop(name)
                            await service.cancel_booking(booking_id, users[name])

                    await check_invariants(session, catalog)
        finally:
            await engine.dispose()

    asyncio.run(run())
