"""Real-time message schemas."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    """Wire envelope for every WebSocket message."""

    event: str = Field(..., min_length=1, max_length=64)
    data: Any = None


class EventRoomMessage(BaseModel):
    """Payload of join-event, leave-event and get-seat-availability."""

    event_id: UUID


class SeatActionMessage(BaseModel):
    """Payload of hold-seat, release-seat and confirm-booking."""

    seat_id: UUID
    event_id: UUID
    user_id: str = Field(..., min_length=1, max_length=128)
