"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://tickets.example.com/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details: Dict[str, Any] = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }
        if self.detail:
            self.problem_details["detail"] = self.detail
        if self.instance:
            self.problem_details["instance"] = self.instance
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    @property
    def code(self) -> Optional[str]:
        """Application-specific error code, if any."""
        return self.problem_details.get("code")


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        code: str = "VALIDATION_ERROR",
        instance: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {"code": code, "retryable": False}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors (AccessDenied)."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_permissions: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {"code": "ACCESS_DENIED", "retryable": False}
        if required_permissions:
            extensions["required_permissions"] = required_permissions

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            instance=instance,
            extensions=extensions,
        )


AccessDeniedError = AuthorizationError


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions: Dict[str, Any] = {
            "code": "NOT_FOUND",
            "retryable": False,
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        code: str = "CONFLICT",
        instance: Optional[str] = None,
    ):
        extensions: Dict[str, Any] = {"code": code, "retryable": False}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


# Business logic exceptions

class EventNotFoundError(NotFoundError):
    """Raised when an event does not exist."""

    def __init__(self, event_id: str):
        super().__init__(resource_type="event", resource_id=event_id)


class SeatNotFoundError(NotFoundError):
    """Raised when a seat does not exist."""

    def __init__(self, seat_id: str):
        super().__init__(resource_type="seat", resource_id=seat_id)


class VenueNotFoundError(NotFoundError):
    """Raised when a venue does not exist."""

    def __init__(self, venue_id: str):
        super().__init__(resource_type="venue", resource_id=venue_id)


class BookingNotFoundError(NotFoundError):
    """Raised when a booking does not exist."""

    def __init__(self, booking_id: str):
        super().__init__(resource_type="booking", resource_id=booking_id)


class PaymentNotFoundError(NotFoundError):
    """Raised when a payment does not exist."""

    def __init__(self, payment_id: str):
        super().__init__(resource_type="payment", resource_id=payment_id)


class EventCancelledError(ValidationError):
    """Raised when booking an event that has been cancelled."""

    def __init__(self, event_id: str):
        super().__init__(detail=f"Event {event_id} is cancelled", code="EVENT_CANCELLED")


class EventPassedError(ValidationError):
    """Raised when booking an event whose date is not in the future."""

    def __init__(self, event_id: str, starts_at: datetime):
        super().__init__(
            detail=f"Event {event_id} started at {starts_at.isoformat()} and can no longer be booked",
            code="EVENT_PASSED",
        )


class SeatVenueMismatchError(ValidationError):
    """Raised when the seat does not belong to the event's venue."""

    def __init__(self, seat_id: str, event_id: str):
        super().__init__(
            detail=f"Seat {seat_id} does not belong to the venue of event {event_id}",
            code="SEAT_VENUE_MISMATCH",
        )


class PaymentMismatchError(ValidationError):
    """Raised when a payment intent was issued for a different booking."""

    def __init__(self, payment_intent_id: str, booking_id: str):
        super().__init__(
            detail=f"Payment intent {payment_intent_id} does not belong to booking {booking_id}",
            code="PAYMENT_MISMATCH",
        )


class SeatUnavailableError(ConflictError):
    """Raised when a seat is not AVAILABLE or was taken by a concurrent booking."""

    def __init__(self, seat_id: str, status: Optional[str] = None):
        detail = f"Seat {seat_id} is not available"
        if status:
            detail += f" (status: {status})"
        super().__init__(
            detail=detail,
            conflicting_resource={"seat_id": seat_id, "status": status},
            code="SEAT_UNAVAILABLE",
        )


class DuplicateBookingError(ConflictError):
    """Raised when the user already holds an active booking for the event."""

    def __init__(self, user_id: str, event_id: str, booking_id: Optional[str] = None):
        super().__init__(
            detail=f"User {user_id} already has an active booking for event {event_id}",
            conflicting_resource={"event_id": event_id, "booking_id": booking_id},
            code="DUPLICATE_BOOKING",
        )


class NotCancellableError(ConflictError):
    """Raised when cancelling a booking that is not PENDING."""

    def __init__(self, booking_id: str, status: str):
        detail = f"Booking {booking_id} cannot be cancelled (status: {status})"
        if status == "CONFIRMED":
            detail += "; paid bookings must be refunded"
        super().__init__(
            detail=detail,
            conflicting_resource={"booking_id": booking_id, "status": status},
            code="NOT_CANCELLABLE",
        )


class EventAlreadyStartedError(ConflictError):
    """Raised when cancelling a booking for an event that has started."""

    def __init__(self, event_id: str):
        super().__init__(
            detail=f"Event {event_id} has already started",
            conflicting_resource={"event_id": event_id},
            code="EVENT_ALREADY_STARTED",
        )


class BookingNotPendingError(ConflictError):
    """Raised when a payment is confirmed for a booking that is not PENDING."""

    def __init__(self, booking_id: str, status: str):
        super().__init__(
            detail=f"Booking {booking_id} is not pending (status: {status})",
            conflicting_resource={"booking_id": booking_id, "status": status},
            code="BOOKING_NOT_PENDING",
        )


class NotRefundableError(ConflictError):
    """Raised when refunding a payment that is not in a refundable state."""

    def __init__(self, payment_id: str, status: str):
        super().__init__(
            detail=f"Payment {payment_id} cannot be refunded (status: {status})",
            conflicting_resource={"payment_id": payment_id, "status": status},
            code="NOT_REFUNDABLE",
        )


class InvalidSeatTransitionError(ConflictError):
    """Raised when venue administration requests a seat status it may not set."""

    def __init__(self, seat_id: str, current: str, requested: str):
        super().__init__(
            detail=f"Seat {seat_id} cannot move from {current} to {requested}",
            conflicting_resource={"seat_id": seat_id, "status": current},
            code="INVALID_SEAT_TRANSITION",
        )


class PaymentNotCompletedError(ProblemDetailsException):
    """Raised when the payment gateway reports the intent as not settled."""

    def __init__(self, payment_intent_id: str, gateway_status: str):
        super().__init__(
            status_code=402,
            title="Payment Not Completed",
            detail=f"Payment {payment_intent_id} is not completed (status: {gateway_status})",
            type_uri=f"{PROBLEM_BASE_URI}/payment-not-completed",
            extensions={
                "code": "PAYMENT_NOT_COMPLETED",
                "retryable": True,
                "payment_intent_id": payment_intent_id,
                "gateway_status": gateway_status,
            },
        )


class PaymentGatewayError(ProblemDetailsException):
    """Raised when the external payment gateway call fails."""

    def __init__(self, operation: str, detail: Optional[str] = None):
        super().__init__(
            status_code=502,
            title="Payment Gateway Error",
            detail=detail or f"Payment gateway failed during {operation}",
            type_uri=f"{PROBLEM_BASE_URI}/payment-gateway-error",
            extensions={
                "code": "PAYMENT_GATEWAY_ERROR",
                "retryable": True,
                "operation": operation,
            },
        )


class WebhookSignatureError(ValidationError):
    """Raised when a webhook payload fails signature verification."""

    def __init__(self, detail: str = "Webhook signature verification failed"):
        super().__init__(detail=detail, code="WEBHOOK_SIGNATURE_INVALID")


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert FastAPI request validation errors to Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "The request data failed validation",
            "instance": request.url.path,
            "code": "VALIDATION_ERROR",
            "retryable": False,
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())
    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content={
            "type": f"{PROBLEM_BASE_URI}/internal-server-error",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred while processing the request",
            "instance": request.url.path,
            "error_id": error_id,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        },
        media_type="application/problem+json",
    )
