"""Booking and Payment model definitions."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .event import Event
    from .user import User
    from .venue import Seat


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

_ACTIVE_PREDICATE = text("status IN ('PENDING', 'CONFIRMED')")


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    SUCCEEDED = "SUCCEEDED"
    REFUNDED = "REFUNDED"


class Booking(Base):
    """
    Booking of one seat for one event by one user.

    Rows are never deleted; CANCELLED and REFUNDED are terminal states kept
    for the audit trail.
    """

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    event_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("events.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    seat_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("seats.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )

    # Snapshot of the seat price at booking time, in minor units
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # Payment intent that settled this booking
    payment_ref: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_booking_total_amount_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'REFUNDED')",
            name="ck_booking_status_valid"
        ),
        # At most one active booking per (user, event) and per seat
        Index(
            "uq_booking_active_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index(
            "uq_booking_active_seat",
            "seat_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
    )

    user: Mapped["User"] = relationship("User", back_populates="bookings")
    event: Mapped["Event"] = relationship("Event", back_populates="bookings")
    seat: Mapped["Seat"] = relationship("Seat", back_populates="bookings")
    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="booking")

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, user_id={self.user_id}, event_id={self.event_id}, "
            f"seat_id={self.seat_id}, status={self.status})>"
        )


class Payment(Base):
    """Settled payment for a booking, as reported by the payment gateway."""

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Payment intent id at the gateway
    provider_ref: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    refund_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.SUCCEEDED,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
        CheckConstraint("status IN ('SUCCEEDED', 'REFUNDED')", name="ck_payment_status_valid"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, booking_id={self.booking_id}, "
            f"provider_ref='{self.provider_ref}', status={self.status})>"
        )
