"""Ticketing schema: users, venues, seats, events, bookings, payments

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ACTIVE_BOOKING = sa.text("status IN ('PENDING', 'CONFIRMED')")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Create users table
    op.create_table('users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create venues table
    op.create_table('venues',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('zip_code', sa.String(length=20), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('capacity > 0', name='ck_venue_capacity_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_venues_city'), 'venues', ['city'], unique=False)
    op.create_index(op.f('ix_venues_name'), 'venues', ['name'], unique=False)

    # Create seats table
    op.create_table('seats',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('venue_id', sa.Uuid(), nullable=False),
        sa.Column('section', sa.String(length=50), nullable=False),
        sa.Column('row', sa.String(length=10), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('price_amount', sa.Integer(), nullable=False),
        sa.Column('price_currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('number > 0', name='ck_seat_number_positive'),
        sa.CheckConstraint('price_amount >= 0', name='ck_seat_price_amount_non_negative'),
        sa.CheckConstraint(
            "status IN ('AVAILABLE', 'RESERVED', 'SOLD', 'MAINTENANCE')",
            name='ck_seat_status_valid'
        ),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('venue_id', 'section', 'row', 'number', name='uq_seat_venue_position')
    )
    op.create_index(op.f('ix_seats_status'), 'seats', ['status'], unique=False)
    op.create_index(op.f('ix_seats_venue_id'), 'seats', ['venue_id'], unique=False)

    # Create events table
    op.create_table('events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('venue_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['venue_id'], ['venues.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_events_starts_at'), 'events', ['starts_at'], unique=False)
    op.create_index(op.f('ix_events_status'), 'events', ['status'], unique=False)
    op.create_index(op.f('ix_events_title'), 'events', ['title'], unique=False)
    op.create_index(op.f('ix_events_venue_id'), 'events', ['venue_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.Uuid(), nullable=False),
        sa.Column('seat_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_ref', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_amount_non_negative'),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'REFUNDED')",
            name='ck_booking_status_valid'
        ),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['seat_id'], ['seats.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_event_id'), 'bookings', ['event_id'], unique=False)
    op.create_index(op.f('ix_bookings_payment_ref'), 'bookings', ['payment_ref'], unique=False)
    op.create_index(op.f('ix_bookings_seat_id'), 'bookings', ['seat_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    # At most one active booking per (user, event) and per seat
    op.create_index(
        'uq_booking_active_user_event', 'bookings', ['user_id', 'event_id'], unique=True,
        postgresql_where=ACTIVE_BOOKING, sqlite_where=ACTIVE_BOOKING
    )
    op.create_index(
        'uq_booking_active_seat', 'bookings', ['seat_id'], unique=True,
        postgresql_where=ACTIVE_BOOKING, sqlite_where=ACTIVE_BOOKING
    )

    # Create payments table
    op.create_table('payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('provider_ref', sa.String(length=255), nullable=False),
        sa.Column('refund_ref', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('amount >= 0', name='ck_payment_amount_non_negative'),
        sa.CheckConstraint("status IN ('SUCCEEDED', 'REFUNDED')", name='ck_payment_status_valid'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_ref')
    )
    op.create_index(op.f('ix_payments_booking_id'), 'payments', ['booking_id'], unique=False)
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('payments')
    op.drop_index('uq_booking_active_seat', table_name='bookings')
    op.drop_index('uq_booking_active_user_event', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('events')
    op.drop_table('seats')
    op.drop_table('venues')
    op.drop_table('users')
