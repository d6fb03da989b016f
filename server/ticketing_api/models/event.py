"""Event model definition."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .venue import Venue


class EventStatus(str, Enum):
    """Event lifecycle status."""
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Event(Base):
    """Event hosted at a venue on a given date."""

    __tablename__ = "events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    venue_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("venues.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[EventStatus] = mapped_column(
        String(20),
        nullable=False,
        default=EventStatus.UPCOMING,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    venue: Mapped["Venue"] = relationship("Venue", back_populates="events")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="event")

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title='{self.title}', starts_at={self.starts_at}, status={self.status})>"
