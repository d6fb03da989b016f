"""Payment router for payment intents, confirmation, refunds and webhooks."""

import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import (
    AdminAuth,
    DatabaseSession,
    NotifierDependency,
    PaymentGatewayDependency,
    RequiredAuth,
    is_admin,
    user_uuid,
)
from ..core.exceptions import AccessDeniedError, ProblemDetailsException
from ..realtime.hold_table import SEAT_RELEASED
from ..realtime.notifier import RoomNotifier, event_room
from ..schemas.common import Money, Pagination
from ..schemas.payment import (
    ConfirmPaymentRequest,
    CreatePaymentIntentRequest,
    Payment,
    PaymentHistoryRequest,
    PaymentIntentResponse,
    PaymentList,
    PaymentResult,
    RefundPaymentRequest,
)
from ..services.booking_service import BookingService
from ..services.payment_gateway import PaymentGateway
from ..services.payment_service import PaymentService
from .booking import convert_booking_to_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payment", tags=["payment"])

STRIPE_SIGNATURE_HEADER = Header(None, alias="Stripe-Signature")


def _convert_payment_to_schema(payment_model) -> Payment:
    """Convert payment model to schema."""
    return Payment(
        id=str(payment_model.id),
        booking_id=str(payment_model.booking_id),
        provider_ref=payment_model.provider_ref,
        refund_ref=payment_model.refund_ref,
        amount=Money(amount=payment_model.amount, currency=payment_model.currency),
        status=payment_model.status,
        created_at=payment_model.created_at,
    )


def _payment_result(booking, payment) -> dict:
    return PaymentResult(
        booking=convert_booking_to_schema(booking),
        payment=_convert_payment_to_schema(payment),
    ).model_dump(mode="json")


@router.post("/create-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: CreatePaymentIntentRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    gateway: PaymentGateway = PaymentGatewayDependency,
) -> JSONResponse:
    """Start payment of the caller's PENDING booking."""
    intent = await PaymentService(db, gateway).create_payment_intent(request.booking_id, user_uuid(user))
    response_data = PaymentIntentResponse(client_secret=intent.client_secret or "", payment_intent_id=intent.id)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/confirm", response_model=PaymentResult)
async def confirm_payment(
    request: ConfirmPaymentRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    gateway: PaymentGateway = PaymentGatewayDependency,
) -> JSONResponse:
    """
    Confirm a booking whose payment intent has succeeded.

    Retrying with the same payment intent returns the same result.
    """
    booking = await BookingService(db).get_booking_by_id_or_raise(request.booking_id)
    if booking.user_id != user_uuid(user) and not is_admin(user):
        raise AccessDeniedError(detail="Only the booking owner can confirm this payment")

    try:
        booking, payment = await PaymentService(db, gateway).confirm_payment(
            request.booking_id, request.payment_intent_id
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in payment confirmation",
            extra={
                "booking_id": str(request.booking_id),
                "payment_intent_id": request.payment_intent_id,
                "error": str(e),
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error")

    return JSONResponse(status_code=200, content=_payment_result(booking, payment))


@router.post("/refund", response_model=PaymentResult)
async def refund_payment(
    request: RefundPaymentRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = AdminAuth,
    gateway: PaymentGateway = PaymentGatewayDependency,
    notifier: RoomNotifier = NotifierDependency,
) -> JSONResponse:
    """
    Refund a payment (admin).

    If the gateway refund fails nothing changes and 502 is returned.
    """
    booking, payment = await PaymentService(db, gateway).refund_payment(request.payment_id, is_admin(user))

    await notifier.broadcast(event_room(booking.event_id), SEAT_RELEASED, {"seat_id": str(booking.seat_id)})

    return JSONResponse(status_code=200, content=_payment_result(booking, payment))


@router.post("/history", response_model=PaymentList)
async def payment_history(
    request: PaymentHistoryRequest,
    db: AsyncSession = DatabaseSession,
    user: dict = RequiredAuth,
    gateway: PaymentGateway = PaymentGatewayDependency,
) -> JSONResponse:
    """List payments for the caller's bookings."""
    items, total = await PaymentService(db, gateway).payment_history(
        user_uuid(user), page=request.page, limit=request.limit
    )
    response_data = PaymentList(
        items=[_convert_payment_to_schema(payment) for payment in items],
        pagination=Pagination.build(request.page, request.limit, total),
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    db: AsyncSession = DatabaseSession,
    gateway: PaymentGateway = PaymentGatewayDependency,
    stripe_signature: Optional[str] = STRIPE_SIGNATURE_HEADER,
) -> JSONResponse:
    """
    Receive payment gateway webhooks.

    The raw body is verified against the webhook signing secret before it
    is parsed.
    """
    payload = await request.body()
    result = await PaymentService(db, gateway).handle_webhook(payload, stripe_signature)
    return JSONResponse(status_code=200, content=result)
