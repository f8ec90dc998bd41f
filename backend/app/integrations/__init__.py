"""Payment gateway integrations for the trainer booking platform."""

from .fake_gateway import FAKE_SIGNATURE, FakePaymentGateway
from .liqpay_client import LiqPayClient, LiqPayError
from .liqpay_gateway import LiqPayGateway
from .payment_gateway import (
    ChargeRequest,
    GatewayEvent,
    GatewayIntent,
    GatewayOutcome,
    GatewayRefund,
    PaymentGateway,
    SubscriptionGateway,
)
from .stripe_gateway import StripeGateway

__all__ = [
    "ChargeRequest",
    "FAKE_SIGNATURE",
    "FakePaymentGateway",
    "GatewayEvent",
    "GatewayIntent",
    "GatewayOutcome",
    "GatewayRefund",
    "LiqPayClient",
    "LiqPayError",
    "LiqPayGateway",
    "PaymentGateway",
    "StripeGateway",
    "SubscriptionGateway",
]
