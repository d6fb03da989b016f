"""Payment-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import PaymentStatus
from .booking import Booking
from .common import Money, Pagination


class CreatePaymentIntentRequest(BaseModel):
    """Request schema for starting payment of a booking."""

    booking_id: UUID


class PaymentIntentResponse(BaseModel):
    """Client secret handed to the frontend payment form."""

    client_secret: str
    payment_intent_id: str


class ConfirmPaymentRequest(BaseModel):
    """Request schema for confirming a settled payment."""

    booking_id: UUID
    payment_intent_id: str = Field(..., min_length=1, max_length=255)


class RefundPaymentRequest(BaseModel):
    """Request schema for refunding a payment (admin)."""

    payment_id: UUID


class PaymentHistoryRequest(BaseModel):
    """Request schema for the caller's payment history."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=50)


class Payment(BaseModel):
    """Payment response schema."""

    id: str
    booking_id: str
    provider_ref: str
    refund_ref: str | None = None
    amount: Money
    status: PaymentStatus
    created_at: datetime


class PaymentResult(BaseModel):
    """Booking and payment after a confirm or refund."""

    booking: Booking
    payment: Payment


class PaymentList(BaseModel):
    """Paginated list of payments."""

    items: list[Payment]
    pagination: Pagination
