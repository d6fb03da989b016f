"""Venue and Seat model definitions."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .event import Event


class SeatStatus(str, Enum):
    """Persisted seat status."""
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    MAINTENANCE = "MAINTENANCE"


class Venue(Base):
    """Venue entity owning seats and hosting events."""

    __tablename__ = "venues"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_venue_capacity_positive"),
    )

    seats: Mapped[list["Seat"]] = relationship("Seat", back_populates="venue")
    events: Mapped[list["Event"]] = relationship("Event", back_populates="venue")

    def __repr__(self) -> str:
        return f"<Venue(id={self.id}, name='{self.name}', city='{self.city}')>"


class Seat(Base):
    """
    Seat entity: the authoritative record of a seat's sale status.

    Status moves AVAILABLE -> RESERVED -> SOLD and back to AVAILABLE only
    through the booking and payment services; venue administration may
    toggle AVAILABLE <-> MAINTENANCE and edit the price.
    """

    __tablename__ = "seats"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    venue_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("venues.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    section: Mapped[str] = mapped_column(String(50), nullable=False)
    row: Mapped[str] = mapped_column(String(10), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Minor units (cents)
    price_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    price_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    status: Mapped[SeatStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SeatStatus.AVAILABLE,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("venue_id", "section", "row", "number", name="uq_seat_venue_position"),
        CheckConstraint("number > 0", name="ck_seat_number_positive"),
        CheckConstraint("price_amount >= 0", name="ck_seat_price_amount_non_negative"),
        CheckConstraint(
            "status IN ('AVAILABLE', 'RESERVED', 'SOLD', 'MAINTENANCE')",
            name="ck_seat_status_valid"
        ),
    )

    venue: Mapped["Venue"] = relationship("Venue", back_populates="seats")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="seat")

    @property
    def label(self) -> str:
        return f"{self.section}-{self.row}{self.number}"

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, venue_id={self.venue_id}, label='{self.label}', status={self.status})>"
