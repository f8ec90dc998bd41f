"""In-memory gateway for local development and tests."""

from __future__ import annotations

from decimal import Decimal
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import uuid4

from app.core.enums import PaymentProvider
from app.core.exceptions import InvalidSignatureException, PaymentGatewayException
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

FAKE_SIGNATURE = "fake-signature"


class FakePaymentGateway(SubscriptionGateway):
    """
    Simple stub that mimics a gateway without network calls.

    Callbacks are JSON bodies signed with ``FAKE_SIGNATURE``::

        {"id": "evt_1", "type": "payment.succeeded", "outcome": "succeeded",
         "external_reference": "...", "transaction_id": "..."}
    """

    def __init__(self, provider: PaymentProvider = PaymentProvider.STRIPE) -> None:
        self.provider = provider
        self._logger = logging.getLogger(self.__class__.__name__)
        self.intents: Dict[str, ChargeRequest] = {}
        self.refunds: List[str] = []
        self.statuses: Dict[str, GatewayOutcome] = {}
        self.refund_error: Optional[str] = None
        self.unsubscribed: List[str] = []

    def charge_currency(self, list_currency: str) -> str:
        return "UAH" if self.provider is PaymentProvider.LIQPAY else list_currency.upper()

    def create_intent(self, request: ChargeRequest) -> GatewayIntent:
        if self.provider is PaymentProvider.LIQPAY:
            reference = request.order_id
        else:
            reference = f"pi_fake_{uuid4().hex}"
        self.intents[reference] = request
        self._logger.debug("Fake intent created", extra={"external_reference": reference})
        return GatewayIntent(
            external_reference=reference,
            client_payload={"fake": True, "external_reference": reference},
        )

    def verify_callback(self, raw_body: bytes, signature: Optional[str]) -> GatewayEvent:
        if signature != FAKE_SIGNATURE:
            raise InvalidSignatureException(self.provider.value)
        try:
            body: Dict[str, Any] = json.loads(raw_body)
            outcome = GatewayOutcome(body.get("outcome", GatewayOutcome.IGNORED.value))
        except ValueError as exc:
            raise PaymentGatewayException("Invalid fake payload", provider=self.provider.value) from exc
        return GatewayEvent(
            event_id=str(body.get("id") or ""),
            event_type=str(body.get("type") or "fake"),
            outcome=outcome,
            external_reference=body.get("external_reference"),
            transaction_id=body.get("transaction_id"),
            failure_reason=body.get("failure_reason"),
            payload=body,
        )

    def refund(self, payment: "Payment", reason: Optional[str] = None) -> GatewayRefund:
        if self.refund_error:
            raise PaymentGatewayException(
                f"Refund failed: {self.refund_error}", provider=self.provider.value
            )
        refund_id = f"re_fake_{uuid4().hex}"
        self.refunds.append(payment.external_reference)
        return GatewayRefund(refund_id=refund_id, status="succeeded")

    def fetch_status(self, external_reference: str) -> GatewayEvent:
        outcome = self.statuses.get(external_reference, GatewayOutcome.PENDING)
        return GatewayEvent(
            event_id=f"sync:{external_reference}:{outcome.value}",
            event_type="status",
            outcome=outcome,
            external_reference=external_reference,
            transaction_id=f"txn_fake_{external_reference}",
            failure_reason="declined" if outcome is GatewayOutcome.FAILED else None,
        )

    def create_subscription_checkout(
        self, *, order_id: str, amount: Decimal, currency: str, description: str
    ) -> Dict[str, Any]:
        return {"fake": True, "order_id": order_id, "amount": str(amount), "currency": currency}

    def unsubscribe(self, order_id: str) -> Dict[str, Any]:
        self.unsubscribed.append(order_id)
        return {"status": "unsubscribed", "order_id": order_id}
