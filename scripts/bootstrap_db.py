#!/usr/bin/env python3
"""Bootstrap script for the ticketing API: migrate the schema and load demo data."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from ticketing_api.core.config import settings
from ticketing_api.core.database import async_session_factory, close_db
from ticketing_api.core.dependencies import create_access_token
from ticketing_api.models import User, UserRole
from ticketing_api.schemas.common import Money
from ticketing_api.schemas.event import CreateEventRequest
from ticketing_api.schemas.venue import AddSeatsRequest, CreateVenueRequest, SeatSpec
from ticketing_api.services.event_service import EventService
from ticketing_api.services.venue_service import VenueService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

server_dir = Path(__file__).parent.parent / "server"

# Section -> price in minor units
SECTION_PRICES = {"Orchestra": 12500, "Mezzanine": 8500, "Balcony": 4500}
ROWS_PER_SECTION = 3
SEATS_PER_ROW = 10


def migrate_database():
    """Bring the schema up to the latest migration."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> dict[str, str]:
    """Create demo accounts, a venue with seats and an upcoming event."""
    logger.info("Creating sample data...")
    currency = settings.payment_currency

    async with async_session_factory() as db:
        existing_users = (await db.execute(select(func.count()).select_from(User))).scalar_one()
        if existing_users > 0:
            logger.info("Sample data already exists, skipping...")
            users = (await db.execute(select(User))).scalars().all()
            return {user.email: _token_for(user) for user in users}

        admin = User(email="admin@example.com", first_name="Ada", last_name="Admin", role=UserRole.ADMIN)
        fan = User(email="fan@example.com", first_name="Frank", last_name="Fan", role=UserRole.USER)
        db.add_all([admin, fan])
        await db.commit()

        venue_service = VenueService(db)
        venue = await venue_service.create_venue(
            CreateVenueRequest(
                name="Grand Music Hall",
                address="100 Main St",
                city="Springfield",
                state="IL",
                zip_code="62701",
                capacity=len(SECTION_PRICES) * ROWS_PER_SECTION * SEATS_PER_ROW,
            )
        )
        await venue_service.add_seats(
            AddSeatsRequest(
                venue_id=venue.id,
                seats=[
                    SeatSpec(section=section, row=str(row), number=number, price=Money(amount=price, currency=currency))
                    for section, price in SECTION_PRICES.items()
                    for row in range(1, ROWS_PER_SECTION + 1)
                    for number in range(1, SEATS_PER_ROW + 1)
                ],
            )
        )

        event = await EventService(db).create_event(
            CreateEventRequest(
                venue_id=venue.id,
                title="Opening Night Gala",
                description="Season opening concert",
                starts_at=datetime.now(timezone.utc) + timedelta(days=30),
            )
        )

        logger.info(
            "Sample data created successfully!",
            extra={"venue_id": str(venue.id), "event_id": str(event.id)}
        )
        return {user.email: _token_for(user) for user in (admin, fan)}


def _token_for(user: User) -> str:
    roles = ["USER", "ADMIN"] if user.role == UserRole.ADMIN else ["USER"]
    expires_at = datetime.now(timezone.utc) + timedelta(days=7)
    return create_access_token(str(user.id), roles=roles, email=user.email, expires_at=expires_at)


async def seed():
    try:
        return await create_sample_data()
    finally:
        await close_db()


def main():
    """Main setup function."""
    logger.info("Starting ticketing API setup...")

    migrate_database()
    tokens = asyncio.run(seed())

    logger.info("Setup completed successfully!")
    for email, token in tokens.items():
        print(f"{email}: Bearer {token}")
    logger.info("You can now start the API server with: cd server && uvicorn ticketing_api.main:app --reload")


if __name__ == "__main__":
    main()
