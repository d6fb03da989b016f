"""Payment service: payment intents, confirmation, refunds and webhooks."""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import (
    AccessDeniedError,
    BookingNotPendingError,
    NotRefundableError,
    PaymentMismatchError,
    PaymentNotCompletedError,
    PaymentNotFoundError,
    ProblemDetailsException,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, Payment, PaymentStatus
from ..models.venue import SeatStatus
from .booking_service import BookingService, transition_booking, transition_seat
from .payment_gateway import PaymentGateway, PaymentIntentInfo

logger = logging.getLogger(__name__)

WEBHOOK_INTENT_SUCCEEDED = "payment_intent.succeeded"
WEBHOOK_INTENT_FAILED = "payment_intent.payment_failed"


class PaymentService:
    """Service for payment operations against the external payment gateway."""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway
        self.booking_service = BookingService(db)

    async def create_payment_intent(self, booking_id: UUID, actor_id: UUID) -> PaymentIntentInfo:
        """
        Start payment of a PENDING booking.

        Raises:
            BookingNotFoundError: If the booking does not exist
            AccessDeniedError: If the actor does not own the booking
            BookingNotPendingError: If the booking is not PENDING
            PaymentGatewayError: If the gateway call fails
        """
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        if booking.user_id != actor_id:
            raise AccessDeniedError(detail="Only the booking owner can pay for this booking")
        if booking.status != BookingStatus.PENDING:
            raise BookingNotPendingError(str(booking_id), booking.status)

        intent = await self.gateway.create_intent(
            amount=booking.total_amount,
            currency=booking.currency,
            metadata={"booking_id": str(booking.id), "user_id": str(actor_id)},
        )

        logger.info(
            "Payment intent created for booking",
            extra={"booking_id": str(booking_id), "payment_intent_id": intent.id, "amount": booking.total_amount}
        )
        return intent

    async def confirm_payment(self, booking_id: UUID, payment_intent_id: str) -> tuple[Booking, Payment]:
        """
        Settle a booking once its payment intent has succeeded.

        Safe to retry: confirming an already CONFIRMED booking with the same
        payment intent returns the existing booking and payment.

        Returns:
            The confirmed booking and its payment

        Raises:
            BookingNotFoundError: If the booking does not exist
            BookingNotPendingError: If the booking is not PENDING
            PaymentNotCompletedError: If the intent has not succeeded
            PaymentMismatchError: If the intent was issued for another booking
            PaymentGatewayError: If the gateway call fails
        """
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        settled = await self._already_settled(booking, payment_intent_id)
        if settled:
            return settled
        if booking.status != BookingStatus.PENDING:
            raise BookingNotPendingError(str(booking_id), booking.status)

        intent = await self.gateway.retrieve_intent(payment_intent_id)
        if not intent.succeeded:
            logger.warning(
                "Payment confirmation rejected - intent not settled",
                extra={"booking_id": str(booking_id), "payment_intent_id": payment_intent_id, "status": intent.status}
            )
            raise PaymentNotCompletedError(payment_intent_id, intent.status)
        if intent.metadata.get("booking_id") != str(booking_id) or intent.amount != booking.total_amount:
            logger.warning(
                "Payment confirmation rejected - intent does not match booking",
                extra={
                    "booking_id": str(booking_id),
                    "payment_intent_id": payment_intent_id,
                    "intent_booking_id": intent.metadata.get("booking_id"),
                    "intent_amount": intent.amount,
                }
            )
            raise PaymentMismatchError(payment_intent_id, str(booking_id))

        seat_id = booking.seat_id
        amount = booking.total_amount
        currency = booking.currency

        # Booking, seat and payment row commit as one unit
        confirmed = await transition_booking(
            self.db, booking_id, BookingStatus.PENDING, BookingStatus.CONFIRMED, payment_ref=payment_intent_id
        )
        if not confirmed:
            await self.db.rollback()
            return await self._resolve_lost_confirmation(booking_id, payment_intent_id)
        await transition_seat(self.db, seat_id, SeatStatus.RESERVED, SeatStatus.SOLD)

        payment = Payment(
            booking_id=booking_id,
            provider_ref=payment_intent_id,
            amount=amount,
            currency=currency,
            status=PaymentStatus.SUCCEEDED,
        )
        self.db.add(payment)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return await self._resolve_lost_confirmation(booking_id, payment_intent_id)

        await self.db.refresh(payment)
        metrics_collector.record_booking_confirmed()

        logger.info(
            "Payment confirmed successfully",
            extra={
                "booking_id": str(booking_id),
                "payment_id": str(payment.id),
                "payment_intent_id": payment_intent_id,
                "seat_id": str(seat_id),
                "amount": amount,
            }
        )
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        return booking, payment

    async def _already_settled(self, booking: Booking, payment_intent_id: str) -> tuple[Booking, Payment] | None:
        if booking.status != BookingStatus.CONFIRMED or booking.payment_ref != payment_intent_id:
            return None
        payment = await self.get_payment_by_provider_ref(payment_intent_id)
        if payment is None:
            return None

        logger.info(
            "Booking already confirmed - returning existing payment",
            extra={"booking_id": str(booking.id), "payment_intent_id": payment_intent_id}
        )
        return booking, payment

    async def _resolve_lost_confirmation(self, booking_id: UUID, payment_intent_id: str) -> tuple[Booking, Payment]:
        """A concurrent writer moved the booking first; succeed only if it was the same payment."""
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        settled = await self._already_settled(booking, payment_intent_id)
        if settled:
            return settled
        raise BookingNotPendingError(str(booking_id), booking.status)

    async def refund_payment(self, payment_id: UUID, actor_is_admin: bool) -> tuple[Booking, Payment]:
        """
        Refund a settled payment and put the seat back on sale.

        The gateway refund runs first; if it fails nothing changes locally.

        Raises:
            AccessDeniedError: If the actor is not an admin
            PaymentNotFoundError: If the payment does not exist
            NotRefundableError: If the payment or its booking is not in a
                refundable state
            PaymentGatewayError: If the gateway refund fails
        """
        if not actor_is_admin:
            raise AccessDeniedError(detail="Only administrators can refund payments", required_permissions=["ADMIN"])

        payment = await self.get_payment_by_id_or_raise(payment_id)
        booking = await self.booking_service.get_booking_by_id_or_raise(payment.booking_id)
        if payment.status != PaymentStatus.SUCCEEDED or booking.status != BookingStatus.CONFIRMED:
            raise NotRefundableError(str(payment_id), payment.status)

        booking_id = booking.id
        seat_id = booking.seat_id
        provider_ref = payment.provider_ref
        payment_status = payment.status

        refund = await self.gateway.create_refund(provider_ref)

        if not await transition_booking(self.db, booking_id, BookingStatus.CONFIRMED, BookingStatus.REFUNDED):
            await self.db.rollback()
            logger.error(
                "Gateway refund issued but booking changed concurrently",
                extra={"payment_id": str(payment_id), "booking_id": str(booking_id), "refund_id": refund.id}
            )
            raise NotRefundableError(str(payment_id), payment_status)
        await transition_seat(self.db, seat_id, SeatStatus.SOLD, SeatStatus.AVAILABLE)
        await self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentStatus.SUCCEEDED)
            .values(status=PaymentStatus.REFUNDED, refund_ref=refund.id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        metrics_collector.record_booking_refunded()
        logger.info(
            "Payment refunded successfully",
            extra={
                "payment_id": str(payment_id),
                "booking_id": str(booking_id),
                "seat_id": str(seat_id),
                "refund_id": refund.id,
            }
        )
        booking = await self.booking_service.get_booking_by_id_or_raise(booking_id)
        payment = await self.get_payment_by_id_or_raise(payment_id)
        return booking, payment

    async def payment_history(self, user_id: UUID, page: int = 1, limit: int = 10) -> tuple[list[Payment], int]:
        """List payments for the user's bookings, newest first."""
        owned = Payment.booking_id.in_(select(Booking.id).where(Booking.user_id == user_id))

        total = (await self.db.execute(select(func.count()).select_from(Payment).where(owned))).scalar_one()
        stmt = (
            select(Payment)
            .where(owned)
            .order_by(Payment.created_at.desc(), Payment.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars()), total

    async def handle_webhook(self, payload: bytes, signature: str | None) -> dict:
        """
        Process a signed gateway webhook delivery.

        A succeeded intent confirms the booking named in its metadata.
        Business conflicts are logged rather than raised so the gateway does
        not keep redelivering.

        Raises:
            WebhookSignatureError: If the delivery fails verification
        """
        event = self.gateway.construct_event(payload, signature)
        event_type = event.get("type")
        intent = (event.get("data") or {}).get("object") or {}
        intent_id = intent.get("id")
        booking_ref = (intent.get("metadata") or {}).get("booking_id")

        if event_type == WEBHOOK_INTENT_SUCCEEDED and intent_id and booking_ref:
            try:
                booking_id = UUID(booking_ref)
            except ValueError:
                logger.warning("Webhook carries an invalid booking id", extra={"booking_id": booking_ref})
                return {"received": True, "handled": False}

            try:
                await self.confirm_payment(booking_id, intent_id)
            except ProblemDetailsException as e:
                logger.warning(
                    "Webhook payment confirmation skipped",
                    extra={"booking_id": booking_ref, "payment_intent_id": intent_id, "reason": e.code or e.title}
                )
                return {"received": True, "handled": False}
            return {"received": True, "handled": True}

        if event_type == WEBHOOK_INTENT_FAILED:
            logger.warning(
                "Payment failed at the gateway",
                extra={"booking_id": booking_ref, "payment_intent_id": intent_id}
            )
        else:
            logger.info("Unhandled webhook event", extra={"event_type": event_type})
        return {"received": True, "handled": False}

    async def get_payment_by_id(self, payment_id: UUID) -> Payment | None:
        """Get payment by ID."""
        stmt = select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_payment_by_id_or_raise(self, payment_id: UUID) -> Payment:
        """Get payment by ID or raise PaymentNotFoundError."""
        payment = await self.get_payment_by_id(payment_id)
        if not payment:
            logger.warning("Payment not found", extra={"payment_id": str(payment_id)})
            raise PaymentNotFoundError(str(payment_id))
        return payment

    async def get_payment_by_provider_ref(self, provider_ref: str) -> Payment | None:
        """Get payment by gateway payment intent ID."""
        stmt = (
            select(Payment)
            .where(Payment.provider_ref == provider_ref)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
