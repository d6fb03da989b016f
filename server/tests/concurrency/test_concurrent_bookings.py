"""Concurrency tests for booking operations."""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ticketing_api.core.database import Base
from ticketing_api.core.exceptions import DuplicateBookingError, SeatUnavailableError
from ticketing_api.models import Booking, User, UserRole
from ticketing_api.models.booking import BookingStatus
from ticketing_api.models.venue import Seat, SeatStatus
from ticketing_api.services.booking_service import BookingService


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """
    Sessions on a file database, one connection each.

    Unlike the shared in-memory connection, every session here runs its own
    transaction, so concurrent bookings really contend in the database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def race_catalog(file_session_factory, seeder):
    async with file_session_factory() as session:
        return await seeder(session)


async def add_users(session_factory, count: int) -> list:
    async with session_factory() as session:
        users = [
            User(email=f"fan{n}@example.com", first_name=f"Fan{n}", last_name="Racer", role=UserRole.USER)
            for n in range(count)
        ]
        session.add_all(users)
        await session.commit()
        return [user.id for user in users]


async def attempt(session_factory, user_id, event_id, seat_id):
    """One booking request with its own session, as a separate HTTP request would have."""
    async with session_factory() as session:
        try:
            booking = await BookingService(session).create_booking(user_id, event_id, seat_id)
            return booking.id
        except (SeatUnavailableError, DuplicateBookingError) as e:
            return e


async def seat_statuses(session_factory, seat_ids) -> dict:
    async with session_factory() as session:
        result = await session.execute(select(Seat.id, Seat.status).where(Seat.id.in_(seat_ids)))
        return {seat_id: status for seat_id, status in result.all()}


async def active_booking_count(session_factory, **filters) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(Booking).where(
            Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]),
            *(getattr(Booking, column) == value for column, value in filters.items()),
        )
        return (await session.execute(stmt)).scalar_one()


@pytest.mark.asyncio
async def test_many_users_one_seat(file_session_factory, race_catalog):
    """Exactly one of many simultaneous bookings of the same seat succeeds."""
    seat_id = race_catalog.seat_ids[0]
    user_ids = await add_users(file_session_factory, 12)

    outcomes = await asyncio.gather(*(
        attempt(file_session_factory, user_id, race_catalog.event_id, seat_id) for user_id in user_ids
    ))

    winners = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
    losers = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
    assert len(winners) == 1
    assert len(losers) == len(user_ids) - 1
    assert all(isinstance(loser, SeatUnavailableError) for loser in losers)
    assert (await seat_statuses(file_session_factory, [seat_id]))[seat_id] == SeatStatus.RESERVED
    assert await active_booking_count(file_session_factory, seat_id=seat_id) == 1


@pytest.mark.asyncio
async def test_one_user_many_seats(file_session_factory, race_catalog):
    """A user racing for several seats of one event ends up with one booking and one reserved seat."""
    seat_ids = race_catalog.seat_ids

    outcomes = await asyncio.gather(*(
        attempt(file_session_factory, race_catalog.alice_id, race_catalog.event_id, seat_id) for seat_id in seat_ids
    ))

    winners = [seat_id for seat_id, outcome in zip(seat_ids, outcomes) if not isinstance(outcome, Exception)]
    losers = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
    assert len(winners) == 1
    assert all(isinstance(loser, DuplicateBookingError) for loser in losers)

    statuses = await seat_statuses(file_session_factory, seat_ids)
    assert statuses[winners[0]] == SeatStatus.RESERVED
    assert all(statuses[seat_id] == SeatStatus.AVAILABLE for seat_id in seat_ids if seat_id != winners[0])
    assert await active_booking_count(
        file_session_factory, user_id=race_catalog.alice_id, event_id=race_catalog.event_id
    ) == 1


@pytest.mark.asyncio
async def test_cancel_races_with_rebooking(file_session_factory, race_catalog):
    """A seat freed by a cancellation is sold to at most one of the users racing for it."""
    seat_id = race_catalog.seat_ids[0]
    first = await attempt(file_session_factory, race_catalog.alice_id, race_catalog.event_id, seat_id)
    user_ids = await add_users(file_session_factory, 6)

    async def cancel():
        async with file_session_factory() as session:
            await BookingService(session).cancel_booking(first, race_catalog.alice_id)

    outcomes = await asyncio.gather(cancel(), *(
        attempt(file_session_factory, user_id, race_catalog.event_id, seat_id) for user_id in user_ids
    ))

    winners = [outcome for outcome in outcomes[1:] if not isinstance(outcome, Exception)]
    assert len(winners) <= 1
    assert await active_booking_count(file_session_factory, seat_id=seat_id) == len(winners)
    expected = SeatStatus.RESERVED if winners else SeatStatus.AVAILABLE
    assert (await seat_statuses(file_session_factory, [seat_id]))[seat_id] == expected
