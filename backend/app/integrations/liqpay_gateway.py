"""LiqPay implementation of the payment gateway interface."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from app.core.enums import PaymentProvider
from app.core.exceptions import InvalidSignatureException, PaymentGatewayException
from app.integrations.liqpay_client import LiqPayClient, LiqPayError, decode_data
from app.integrations.payment_gateway import (
    ChargeRequest,
    GatewayEvent,
    GatewayIntent,
    GatewayOutcome,
    GatewayRefund,
    SubscriptionGateway,
)

if TYPE_CHECKING:
    from app.models.payment import Payment

logger = logging.getLogger(__name__)

CHARGE_CURRENCY = "UAH"

STATUS_OUTCOMES = {
    "success": GatewayOutcome.SUCCEEDED,
    "subscribed": GatewayOutcome.SUCCEEDED,
    "sandbox": GatewayOutcome.SUCCEEDED,
    "failure": GatewayOutcome.FAILED,
    "error": GatewayOutcome.FAILED,
    "reversed": GatewayOutcome.REFUNDED,
}

REFUND_OK_STATUSES = {"reversed", "success"}


def liqpay_amount(amount: Decimal) -> Any:
    """JSON-friendly amount: whole numbers as int, otherwise float."""
    return int(amount) if amount == amount.to_integral_value() else float(amount)


def outcome_for_status(status: Optional[str]) -> GatewayOutcome:
    """success -> SUCCEEDED, failure/error -> FAILED, anything else is still pending."""
    return STATUS_OUTCOMES.get((status or "").lower(), GatewayOutcome.PENDING)


class LiqPayGateway(SubscriptionGateway):
    """Hosted-checkout payments with base64 data and SHA1 signatures."""

    provider = PaymentProvider.LIQPAY

    def __init__(self, client: LiqPayClient, *, frontend_url: str, backend_url: str):
        self.client = client
        self.frontend_url = frontend_url.rstrip("/")
        self.backend_url = backend_url.rstrip("/")

    def charge_currency(self, list_currency: str) -> str:
        return CHARGE_CURRENCY

    def create_intent(self, request: ChargeRequest) -> GatewayIntent:
        params = {
            "action": "pay",
            "amount": liqpay_amount(request.amount),
            "currency": request.currency,
            "description": request.description,
            "order_id": request.order_id,
            "result_url": f"{self.frontend_url}/payment-success",
            "server_url": f"{self.backend_url}/payments/liqpay/callback",
        }
        checkout = self.client.build_checkout(params)
        logger.info(
            "Created LiqPay checkout",
            extra={"order_id": request.order_id, "session_id": request.session_id},
        )
        return GatewayIntent(
            external_reference=request.order_id,
            client_payload={**checkout, "order_id": request.order_id},
        )

    def create_subscription_checkout(
        self, *, order_id: str, amount: Decimal, currency: str, description: str
    ) -> Dict[str, str]:
        """Signed checkout for a monthly recurring charge."""
        params = {
            "action": "subscribe",
            "amount": liqpay_amount(amount),
            "currency": currency,
            "description": description,
            "order_id": order_id,
            "subscribe": "1",
            "subscribe_date_start": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            "subscribe_periodicity": "month",
            "result_url": f"{self.frontend_url}/trainer/billing?success=true",
            "server_url": f"{self.backend_url}/payments/liqpay/subscription-callback",
        }
        return {**self.client.build_checkout(params), "order_id": order_id}

    def unsubscribe(self, order_id: str) -> Dict[str, Any]:
        try:
            return self.client.unsubscribe(order_id)
        except LiqPayError as exc:
            raise PaymentGatewayException(
                f"Unsubscribe failed: {exc}", provider=self.provider.value
            ) from exc

    def _event_from_payload(
        self, payload: Dict[str, Any], *, event_type: str, event_id: Optional[str] = None
    ) -> GatewayEvent:
        order_id = payload.get("order_id")
        status = str(payload.get("status") or "unknown")
        if not order_id:
            raise PaymentGatewayException(
                "LiqPay payload is missing order_id", provider=self.provider.value
            )
        transaction_id = payload.get("transaction_id") or payload.get("payment_id")
        outcome = outcome_for_status(status)
        if event_id is None:
            # Recurring charges reuse the order id, so the LiqPay payment id disambiguates them.
            payment_id = payload.get("payment_id")
            event_id = (
                f"{order_id}:{payment_id}:{status}" if payment_id else f"{order_id}:{status}"
            )
        return GatewayEvent(
            event_id=event_id,
            event_type=event_type,
            outcome=outcome,
            external_reference=str(order_id),
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            failure_reason=(
                payload.get("err_description") or payload.get("err_code") or status
                if outcome is GatewayOutcome.FAILED
                else None
            ),
            payload=payload,
        )

    def verify_callback(self, raw_body: bytes, signature: Optional[str]) -> GatewayEvent:
        """``raw_body`` is the base64 ``data`` field exactly as LiqPay posted it."""
        data = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else str(raw_body)
        if not signature or not self.client.verify_callback(data, signature):
            logger.warning("Invalid LiqPay callback signature")
            raise InvalidSignatureException(self.provider.value)
        try:
            payload = decode_data(data)
        except ValueError as exc:
            raise PaymentGatewayException(str(exc), provider=self.provider.value) from exc
        return self._event_from_payload(payload, event_type=str(payload.get("action") or "callback"))

    def refund(self, payment: "Payment", reason: Optional[str] = None) -> GatewayRefund:
        try:
            response = self.client.refund(
                payment.external_reference, amount=liqpay_amount(Decimal(payment.charged_amount))
            )
        except LiqPayError as exc:
            raise PaymentGatewayException(
                f"Refund failed: {exc}", provider=self.provider.value
            ) from exc

        status = str(response.get("status") or "")
        if status not in REFUND_OK_STATUSES:
            message = response.get("err_description") or status or "unknown status"
            raise PaymentGatewayException(
                f"Refund failed: {message}", provider=self.provider.value
            )
        refund_id = response.get("transaction_id") or response.get("payment_id")
        return GatewayRefund(
            refund_id=str(refund_id) if refund_id is not None else None,
            status=status,
            payload=response,
        )

    def fetch_status(self, external_reference: str) -> GatewayEvent:
        try:
            response = self.client.status(external_reference)
        except LiqPayError as exc:
            raise PaymentGatewayException(
                f"Status check failed: {exc}", provider=self.provider.value
            ) from exc
        response.setdefault("order_id", external_reference)
        status = response.get("status") or "unknown"
        return self._event_from_payload(
            response, event_type="status", event_id=f"sync:{external_reference}:{status}"
        )
