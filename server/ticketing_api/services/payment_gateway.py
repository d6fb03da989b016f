"""Payment gateway abstraction and its Stripe implementation."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import stripe
from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.exceptions import PaymentGatewayError, WebhookSignatureError

logger = logging.getLogger(__name__)

INTENT_SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class PaymentIntentInfo:
    """What the service needs to know about a gateway payment intent."""

    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == INTENT_SUCCEEDED


@dataclass(frozen=True)
class RefundInfo:
    """Gateway refund record."""

    id: str
    status: str
    payment_intent_id: str


class PaymentGateway(Protocol):
    """External payment collaborator used by the payment service."""

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntentInfo: ...

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo: ...

    async def create_refund(self, intent_id: str) -> RefundInfo: ...

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]: ...


def _intent_info(intent: Any) -> PaymentIntentInfo:
    metadata = intent.metadata
    return PaymentIntentInfo(
        id=intent.id,
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        client_secret=intent.client_secret,
        metadata={key: str(value) for key, value in metadata.items()} if metadata else {},
    )


class StripePaymentGateway:
    """
    PaymentGateway backed by the Stripe SDK.

    The SDK is synchronous, so every call runs in the thread pool. SDK
    errors are surfaced as PaymentGatewayError; callers never see Stripe
    exception types.
    """

    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntentInfo:
        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency.lower(),
                metadata=metadata,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("Payment intent creation failed", extra={"error": str(e), "metadata": metadata})
            raise PaymentGatewayError("create_intent", detail=e.user_message or str(e))

        logger.info(
            "Payment intent created",
            extra={"payment_intent_id": intent.id, "amount": amount, "currency": currency}
        )
        return _intent_info(intent)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        try:
            intent = await run_in_threadpool(stripe.PaymentIntent.retrieve, intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error(
                "Payment intent retrieval failed",
                extra={"payment_intent_id": intent_id, "error": str(e)}
            )
            raise PaymentGatewayError("retrieve_intent", detail=e.user_message or str(e))
        return _intent_info(intent)

    async def create_refund(self, intent_id: str) -> RefundInfo:
        try:
            refund = await run_in_threadpool(stripe.Refund.create, payment_intent=intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.error("Refund failed", extra={"payment_intent_id": intent_id, "error": str(e)})
            raise PaymentGatewayError("create_refund", detail=e.user_message or str(e))

        logger.info("Refund created", extra={"payment_intent_id": intent_id, "refund_id": refund.id})
        return RefundInfo(id=refund.id, status=refund.status, payment_intent_id=intent_id)

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Verify a webhook delivery against the signing secret.

        Raises:
            WebhookSignatureError: If no signing secret is configured, the
                signature is missing or invalid, or the payload is not valid JSON
        """
        if not self.webhook_secret:
            logger.error("Webhook rejected - no signing secret configured")
            raise WebhookSignatureError("Webhook signing secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing webhook signature")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("Webhook signature verification failed", extra={"error": str(e)})
            raise WebhookSignatureError()
        except ValueError:
            raise WebhookSignatureError("Webhook payload is not valid JSON")
        return json.loads(payload)
