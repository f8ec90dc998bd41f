"""Stripe implementation of the payment gateway interface."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import SecretStr
import stripe

from app.core.enums import PaymentProvider
from app.core.exceptions import InvalidSignatureException, PaymentGatewayException
from app.integrations.payment_gateway import (
    ChargeRequest,
    GatewayEvent,
    GatewayIntent,
    GatewayOutcome,
    GatewayRefund,
    PaymentGateway,
)

if TYPE_CHECKING:
    from app.models.payment import Payment

logger = logging.getLogger(__name__)

EVENT_OUTCOMES = {
    "payment_intent.succeeded": GatewayOutcome.SUCCEEDED,
    "payment_intent.payment_failed": GatewayOutcome.FAILED,
    "payment_intent.canceled": GatewayOutcome.FAILED,
    "payment_intent.processing": GatewayOutcome.PENDING,
    "charge.dispute.created": GatewayOutcome.DISPUTED,
    "charge.refunded": GatewayOutcome.REFUNDED,
}

INTENT_STATUS_OUTCOMES = {
    "succeeded": GatewayOutcome.SUCCEEDED,
    "canceled": GatewayOutcome.FAILED,
}


def to_minor_units(amount: Decimal) -> int:
    """Decimal major units -> integer cents."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _error_message(exc: stripe.StripeError) -> str:
    return getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__


class StripeGateway(PaymentGateway):
    """PaymentIntents with Connect destination charges when the trainer has an account."""

    provider = PaymentProvider.STRIPE

    def __init__(
        self,
        *,
        api_key: str | SecretStr | None,
        webhook_secrets: List[str],
        publishable_key: str = "",
    ):
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if secret_value:
            stripe.api_key = secret_value
            # Webhook redelivery is the retry mechanism; fail fast on network errors
            stripe.max_network_retries = 0
        else:
            logger.warning("Stripe secret key not configured")
        self.webhook_secrets = [s for s in webhook_secrets if s]
        self.publishable_key = publishable_key

    def charge_currency(self, list_currency: str) -> str:
        return list_currency.upper()

    def create_intent(self, request: ChargeRequest) -> GatewayIntent:
        kwargs: Dict[str, Any] = {
            "amount": to_minor_units(request.amount),
            "currency": request.currency.lower(),
            "description": request.description,
            "automatic_payment_methods": {"enabled": True},
            "metadata": {
                "sessionId": request.session_id,
                "clientId": request.client_id,
                "trainerId": request.trainer_id,
                "orderId": request.order_id,
                "type": "session_payment",
                **request.metadata,
            },
        }
        if request.customer_id:
            kwargs["customer"] = request.customer_id
        if request.destination_account:
            kwargs["application_fee_amount"] = to_minor_units(request.platform_fee)
            kwargs["transfer_data"] = {"destination": request.destination_account}

        try:
            intent = stripe.PaymentIntent.create(
                **kwargs, idempotency_key=f"session_payment_{request.order_id}"
            )
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentIntent creation failed: %s", exc)
            raise PaymentGatewayException(
                _error_message(exc), provider=self.provider.value
            ) from exc

        return GatewayIntent(
            external_reference=intent.id,
            client_payload={
                "client_secret": intent.client_secret,
                "payment_intent_id": intent.id,
                "publishable_key": self.publishable_key,
            },
        )

    def verify_callback(self, raw_body: bytes, signature: Optional[str]) -> GatewayEvent:
        if not signature:
            raise InvalidSignatureException(self.provider.value, "Missing stripe-signature header")
        if not self.webhook_secrets:
            raise PaymentGatewayException(
                "Webhook secret not configured", provider=self.provider.value
            )

        verified = False
        for secret in self.webhook_secrets:
            try:
                stripe.Webhook.construct_event(raw_body, signature, secret)
                verified = True
                break
            except stripe.SignatureVerificationError:
                continue
            except ValueError as exc:
                raise PaymentGatewayException(
                    "Invalid webhook payload", provider=self.provider.value
                ) from exc
        if not verified:
            logger.warning("Invalid Stripe webhook signature")
            raise InvalidSignatureException(self.provider.value, "Invalid webhook signature")

        event: Dict[str, Any] = json.loads(raw_body)
        return self.normalize_event(event)

    def normalize_event(self, event: Dict[str, Any]) -> GatewayEvent:
        event_type = str(event.get("type") or "unknown")
        obj: Dict[str, Any] = (event.get("data") or {}).get("object") or {}
        outcome = EVENT_OUTCOMES.get(event_type, GatewayOutcome.IGNORED)

        if event_type.startswith("payment_intent."):
            reference = obj.get("id")
            transaction_id = obj.get("latest_charge")
        elif event_type.startswith("charge.dispute."):
            reference = obj.get("payment_intent")
            transaction_id = obj.get("charge")
        elif event_type.startswith("charge."):
            reference = obj.get("payment_intent")
            transaction_id = obj.get("id")
        else:
            reference = None
            transaction_id = None

        failure_reason = None
        if outcome is GatewayOutcome.FAILED:
            last_error = obj.get("last_payment_error") or {}
            failure_reason = (
                last_error.get("message")
                or obj.get("cancellation_reason")
                or event_type.split(".", 1)[-1]
            )

        return GatewayEvent(
            event_id=str(event.get("id") or ""),
            event_type=event_type,
            outcome=outcome,
            external_reference=reference,
            transaction_id=transaction_id,
            failure_reason=failure_reason,
            payload=event,
        )

    def refund(self, payment: "Payment", reason: Optional[str] = None) -> GatewayRefund:
        try:
            refund = stripe.Refund.create(
                payment_intent=payment.external_reference,
                reason="requested_by_customer",
                metadata={"payment_id": payment.id, "note": (reason or "")[:500]},
                idempotency_key=f"refund_{payment.id}",
            )
        except stripe.StripeError as exc:
            logger.error("Stripe refund failed for payment %s: %s", payment.id, exc)
            raise PaymentGatewayException(
                f"Refund failed: {_error_message(exc)}", provider=self.provider.value
            ) from exc
        return GatewayRefund(
            refund_id=refund.id,
            status=str(refund.status),
            payload={"id": refund.id, "status": refund.status},
        )

    def fetch_status(self, external_reference: str) -> GatewayEvent:
        try:
            intent = stripe.PaymentIntent.retrieve(external_reference)
        except stripe.StripeError as exc:
            raise PaymentGatewayException(
                f"Status check failed: {_error_message(exc)}", provider=self.provider.value
            ) from exc

        status = str(intent.status)
        last_error = getattr(intent, "last_payment_error", None)
        outcome = INTENT_STATUS_OUTCOMES.get(status, GatewayOutcome.PENDING)
        if status == "requires_payment_method" and last_error:
            outcome = GatewayOutcome.FAILED

        failure_reason = None
        if outcome is GatewayOutcome.FAILED:
            failure_reason = getattr(last_error, "message", None) or status
        return GatewayEvent(
            event_id=f"sync:{external_reference}:{status}",
            event_type="payment_intent.retrieve",
            outcome=outcome,
            external_reference=external_reference,
            transaction_id=getattr(intent, "latest_charge", None),
            failure_reason=failure_reason,
            payload={"id": external_reference, "status": status},
        )
