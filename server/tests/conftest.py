"""Test configuration and fixtures."""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any
from uuid import UUID

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BEARER_TOKEN_SECRET", "test-secret")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ticketing_api.core.database import Base, get_db  # noqa: E402
from ticketing_api.core.dependencies import create_access_token  # noqa: E402
from ticketing_api.core.exceptions import PaymentGatewayError, WebhookSignatureError  # noqa: E402
from ticketing_api.models import *  # noqa: E402,F403 - Import all models
from ticketing_api.models import User, UserRole  # noqa: E402
from ticketing_api.realtime.hold_table import HoldTable  # noqa: E402
from ticketing_api.realtime.notifier import RoomNotifier  # noqa: E402
from ticketing_api.schemas.common import Money  # noqa: E402
from ticketing_api.schemas.event import CreateEventRequest  # noqa: E402
from ticketing_api.schemas.venue import AddSeatsRequest, CreateVenueRequest, SeatSpec  # noqa: E402
from ticketing_api.services.event_service import EventService  # noqa: E402
from ticketing_api.services.payment_gateway import PaymentIntentInfo, RefundInfo  # noqa: E402
from ticketing_api.services.venue_service import VenueService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SEAT_PRICE = 7500
HOLD_TIMEOUT = 300.0


class FakeClock:
    """Settable clock for the hold table."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """Records what the notifier pushes to one client."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(data)

    def events(self, name: str | None = None) -> list:
        return [message for message in self.sent if name is None or message["event"] == name]

    def payloads(self, name: str) -> list[dict]:
        return [message["data"] for message in self.events(name)]

    def clear(self) -> None:
        self.sent.clear()


@dataclass
class FakePaymentGateway:
    """In-memory payment gateway with switchable outcomes."""

    intents: dict[str, PaymentIntentInfo] = field(default_factory=dict)
    refunds: list[RefundInfo] = field(default_factory=list)
    fail_refunds: bool = False
    webhook_signature: str = "valid-signature"

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntentInfo:
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = PaymentIntentInfo(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency.lower(),
            client_secret=f"{intent_id}_secret",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent

    def settle(self, intent_id: str, status: str = "succeeded") -> None:
        intent = self.intents[intent_id]
        self.intents[intent_id] = PaymentIntentInfo(
            id=intent.id,
            status=status,
            amount=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            metadata=intent.metadata,
        )

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        if intent_id not in self.intents:
            raise PaymentGatewayError("retrieve_intent", detail=f"No such payment intent: {intent_id}")
        return self.intents[intent_id]

    async def create_refund(self, intent_id: str) -> RefundInfo:
        if self.fail_refunds:
            raise PaymentGatewayError("create_refund", detail="Card network unavailable")
        refund = RefundInfo(id=f"re_test_{len(self.refunds) + 1}", status="succeeded", payment_intent_id=intent_id)
        self.refunds.append(refund)
        return refund

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if signature != self.webhook_signature:
            raise WebhookSignatureError()
        return json.loads(payload)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RoomNotifier()


@pytest.fixture
def hold_table(notifier, clock):
    return HoldTable(notifier, timeout_seconds=HOLD_TIMEOUT, clock=clock)


@pytest.fixture
def payment_gateway():
    return FakePaymentGateway()


@pytest.fixture
def connect(notifier):
    """Register fake client connections with the notifier."""

    def _connect(connection_id: str, fail: bool = False) -> FakeConnection:
        connection = FakeConnection(fail=fail)
        notifier.register(connection_id, connection)
        return connection

    return _connect


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, test_session_factory, payment_gateway):
    """Create the application wired to the test database and fake gateway."""
    from ticketing_api.main import create_app
    from ticketing_api.realtime.handler import RealtimeHandler

    app = create_app()
    app.state.payment_gateway = payment_gateway
    app.state.realtime_handler = RealtimeHandler(
        app.state.hold_table, app.state.notifier, test_session_factory
    )

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_user(session: AsyncSession, email: str, role: UserRole = UserRole.USER) -> UUID:
    first_name = email.split("@")[0].title()
    user = User(email=email, first_name=first_name, last_name="Tester", role=role)
    session.add(user)
    await session.commit()
    return user.id


async def seed_catalog(session: AsyncSession, seat_count: int = 4) -> SimpleNamespace:
    """
    Create users, a venue with seats, a second venue with one seat, and an
    upcoming event at the first venue. Only ids are returned, so callers
    never touch ORM objects that a rollback may have expired.
    """
    venue_service = VenueService(session)
    event_service = EventService(session)

    alice_id = await create_user(session, "alice@example.com")
    bob_id = await create_user(session, "bob@example.com")
    admin_id = await create_user(session, "admin@example.com", role=UserRole.ADMIN)

    venue = await venue_service.create_venue(
        CreateVenueRequest(
            name="Riverside Arena",
            address="1 River Rd",
            city="Portland",
            state="OR",
            zip_code="97201",
            capacity=500,
        )
    )
    venue_id = venue.id
    seats = await venue_service.add_seats(
        AddSeatsRequest(
            venue_id=venue_id,
            seats=[
                SeatSpec(section="A", row="1", number=n, price=Money(amount=SEAT_PRICE, currency="USD"))
                for n in range(1, seat_count + 1)
            ],
        )
    )
    seat_ids = [seat.id for seat in seats]

    other_venue = await venue_service.create_venue(
        CreateVenueRequest(
            name="Hilltop Hall",
            address="9 Hill St",
            city="Portland",
            state="OR",
            zip_code="97210",
            capacity=50,
        )
    )
    other_venue_id = other_venue.id
    other_seats = await venue_service.add_seats(
        AddSeatsRequest(
            venue_id=other_venue_id,
            seats=[SeatSpec(section="B", row="2", number=1, price=Money(amount=5000, currency="USD"))],
        )
    )
    other_seat_id = other_seats[0].id

    event = await event_service.create_event(
        CreateEventRequest(
            venue_id=venue_id,
            title="Autumn Symphony",
            description="Season opener",
            starts_at=datetime.now(timezone.utc) + timedelta(days=30),
        )
    )

    return SimpleNamespace(
        alice_id=alice_id,
        bob_id=bob_id,
        admin_id=admin_id,
        venue_id=venue_id,
        seat_ids=seat_ids,
        other_venue_id=other_venue_id,
        other_seat_id=other_seat_id,
        event_id=event.id,
    )


@pytest.fixture
def seeder():
    """The catalog seeding helper, for tests that manage their own sessions."""
    return seed_catalog


@pytest_asyncio.fixture(scope="function")
async def catalog(test_session):
    """Seeded users, venues, seats and an upcoming event."""
    return await seed_catalog(test_session)


@pytest.fixture
def auth_headers():
    """Build a bearer Authorization header for a user id."""

    def _headers(user_id: UUID, admin: bool = False) -> dict[str, str]:
        roles = ["USER", "ADMIN"] if admin else ["USER"]
        return {"Authorization": f"Bearer {create_access_token(str(user_id), roles=roles)}"}

    return _headers


@pytest.fixture
def watch_room(test_app):
    """Subscribe a recording connection to an event room of the test app."""

    def _watch(connection_id: str, event_id: UUID) -> FakeConnection:
        connection = FakeConnection()
        test_app.state.notifier.register(connection_id, connection)
        test_app.state.notifier.join(connection_id, f"event-{event_id}")
        return connection

    return _watch
