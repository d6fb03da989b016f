"""Unit tests for the seat registry and event lifecycle."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from ticketing_api.core.exceptions import (
    ConflictError,
    EventNotFoundError,
    InvalidSeatTransitionError,
    SeatNotFoundError,
    VenueNotFoundError,
)
from ticketing_api.models.event import EventStatus
from ticketing_api.models.venue import SeatStatus
from ticketing_api.schemas.common import Money
from ticketing_api.schemas.event import CreateEventRequest, UpdateEventStatusRequest
from ticketing_api.schemas.venue import AddSeatsRequest, SeatSpec, UpdateSeatRequest
from ticketing_api.services.booking_service import BookingService
from ticketing_api.services.event_service import EventService, as_utc, event_has_started
from ticketing_api.services.venue_service import VenueService


def seat_spec(section="C", row="3", number=1, amount=4200):
    return SeatSpec(section=section, row=row, number=number, price=Money(amount=amount, currency="USD"))


@pytest.mark.asyncio
async def test_list_seats_ordered_by_position(test_session, catalog):
    service = VenueService(test_session)
    await service.add_seats(AddSeatsRequest(
        venue_id=catalog.venue_id,
        seats=[seat_spec(section="B", number=2), seat_spec(section="B", number=1)],
    ))

    seats = await service.list_seats(catalog.venue_id)

    positions = [(seat.section, seat.row, seat.number) for seat in seats]
    assert positions == sorted(positions)
    assert len(seats) == 6
    assert all(seat.status == SeatStatus.AVAILABLE for seat in seats)


@pytest.mark.asyncio
async def test_add_seats_rejects_repeated_position_in_request(test_session, catalog):
    with pytest.raises(ConflictError) as exc_info:
        await VenueService(test_session).add_seats(AddSeatsRequest(
            venue_id=catalog.venue_id,
            seats=[seat_spec(), seat_spec()],
        ))

    assert exc_info.value.code == "DUPLICATE_SEAT"


@pytest.mark.asyncio
async def test_add_seats_rejects_existing_position(test_session, catalog):
    service = VenueService(test_session)

    with pytest.raises(ConflictError) as exc_info:
        await service.add_seats(AddSeatsRequest(
            venue_id=catalog.venue_id,
            seats=[seat_spec(section="A", row="1", number=1)],
        ))

    assert exc_info.value.code == "DUPLICATE_SEAT"
    assert len(await service.list_seats(catalog.venue_id)) == 4


@pytest.mark.asyncio
async def test_add_seats_unknown_venue(test_session):
    with pytest.raises(VenueNotFoundError):
        await VenueService(test_session).add_seats(AddSeatsRequest(venue_id=uuid4(), seats=[seat_spec()]))


@pytest.mark.asyncio
async def test_update_seat_price(test_session, catalog):
    seat = await VenueService(test_session).update_seat(
        UpdateSeatRequest(seat_id=catalog.seat_ids[0], price=Money(amount=9900, currency="USD"))
    )

    assert seat.price_amount == 9900
    assert seat.status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_maintenance_round_trip(test_session, catalog):
    service = VenueService(test_session)
    seat_id = catalog.seat_ids[0]

    down = await service.update_seat(UpdateSeatRequest(seat_id=seat_id, status=SeatStatus.MAINTENANCE))
    assert down.status == SeatStatus.MAINTENANCE

    up = await service.update_seat(UpdateSeatRequest(seat_id=seat_id, status=SeatStatus.AVAILABLE))
    assert up.status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_admin_cannot_sell_or_free_booked_seat(test_session, catalog):
    service = VenueService(test_session)
    seat_id = catalog.seat_ids[0]

    with pytest.raises(InvalidSeatTransitionError):
        await service.update_seat(UpdateSeatRequest(seat_id=seat_id, status=SeatStatus.SOLD))

    await BookingService(test_session).create_booking(catalog.alice_id, catalog.event_id, seat_id)

    with pytest.raises(InvalidSeatTransitionError):
        await service.update_seat(UpdateSeatRequest(seat_id=seat_id, status=SeatStatus.AVAILABLE))
    with pytest.raises(InvalidSeatTransitionError):
        await service.update_seat(UpdateSeatRequest(seat_id=seat_id, status=SeatStatus.MAINTENANCE))

    assert (await service.get_seat_by_id(seat_id)).status == SeatStatus.RESERVED


@pytest.mark.asyncio
async def test_update_unknown_seat(test_session):
    with pytest.raises(SeatNotFoundError):
        await VenueService(test_session).update_seat(UpdateSeatRequest(seat_id=uuid4(), status=SeatStatus.MAINTENANCE))


@pytest.mark.asyncio
async def test_create_event_normalizes_start_to_utc(test_session, catalog):
    local = timezone(timedelta(hours=-7))
    starts_at = datetime(2031, 5, 1, 19, 30, tzinfo=local)

    event = await EventService(test_session).create_event(
        CreateEventRequest(venue_id=catalog.venue_id, title="Late Show", starts_at=starts_at)
    )

    assert event.status == EventStatus.UPCOMING
    assert as_utc(event.starts_at) == datetime(2031, 5, 2, 2, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_create_event_unknown_venue(test_session):
    with pytest.raises(VenueNotFoundError):
        await EventService(test_session).create_event(
            CreateEventRequest(venue_id=uuid4(), title="Nowhere", starts_at=datetime.now(timezone.utc))
        )


@pytest.mark.asyncio
async def test_event_status_lifecycle(test_session, catalog):
    service = EventService(test_session)

    ongoing = await service.update_event_status(
        UpdateEventStatusRequest(event_id=catalog.event_id, status=EventStatus.ONGOING)
    )
    assert ongoing.status == EventStatus.ONGOING

    completed = await service.update_event_status(
        UpdateEventStatusRequest(event_id=catalog.event_id, status=EventStatus.COMPLETED)
    )
    assert completed.status == EventStatus.COMPLETED

    with pytest.raises(ConflictError) as exc_info:
        await service.update_event_status(
            UpdateEventStatusRequest(event_id=catalog.event_id, status=EventStatus.UPCOMING)
        )
    assert exc_info.value.code == "INVALID_EVENT_TRANSITION"


@pytest.mark.asyncio
async def test_get_unknown_event(test_session):
    with pytest.raises(EventNotFoundError):
        await EventService(test_session).get_event_by_id_or_raise(uuid4())


@pytest.mark.asyncio
async def test_seat_availability_merges_holds(test_session, catalog, hold_table):
    held_seat, booked_seat = catalog.seat_ids[0], catalog.seat_ids[1]
    await hold_table.acquire(held_seat, "carol", "conn-1", catalog.event_id)
    await BookingService(test_session).create_booking(catalog.alice_id, catalog.event_id, booked_seat)

    snapshot = await EventService(test_session).seat_availability(catalog.event_id, hold_table)

    assert snapshot.event_id == str(catalog.event_id)
    by_id = {seat.id: seat for seat in snapshot.seats}
    assert set(by_id) == {str(seat_id) for seat_id in catalog.seat_ids}
    assert by_id[str(held_seat)].is_held is True
    assert by_id[str(held_seat)].held_by == "carol"
    assert by_id[str(held_seat)].status == SeatStatus.AVAILABLE
    assert by_id[str(booked_seat)].is_held is False
    assert by_id[str(booked_seat)].status == SeatStatus.RESERVED
    assert by_id[str(booked_seat)].price.amount == 7500


@pytest.mark.asyncio
async def test_seat_availability_hides_expired_holds(test_session, catalog, hold_table, clock):
    seat_id = catalog.seat_ids[0]
    await hold_table.acquire(seat_id, "carol", "conn-1", catalog.event_id)
    clock.advance(301)

    snapshot = await EventService(test_session).seat_availability(catalog.event_id, hold_table)

    seat = next(seat for seat in snapshot.seats if seat.id == str(seat_id))
    assert seat.is_held is False
    assert seat.held_by is None


def test_event_has_started_boundary():
    starts_at = datetime(2030, 1, 1, 20, 0, tzinfo=timezone.utc)
    event = type("EventStub", (), {"starts_at": starts_at.replace(tzinfo=None)})()

    assert event_has_started(event, starts_at) is True
    assert event_has_started(event, starts_at - timedelta(microseconds=1)) is False
