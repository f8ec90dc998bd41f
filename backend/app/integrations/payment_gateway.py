"""Provider-neutral interface the payment service talks to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from app.core.enums import PaymentProvider

if TYPE_CHECKING:
    from app.models.payment import Payment


class GatewayOutcome(str, Enum):
    """What a gateway event means for the local Payment row."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"
    DISPUTED = "disputed"
    REFUNDED = "refunded"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ChargeRequest:
    """
    A charge to open at the gateway.

    ``amount`` and ``platform_fee`` are expressed in ``currency``, the
    currency the gateway collects in, already rounded for that currency.
    """

    order_id: str
    session_id: str
    client_id: str
    trainer_id: str
    amount: Decimal
    currency: str
    platform_fee: Decimal
    description: str
    destination_account: Optional[str] = None
    customer_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayIntent:
    external_reference: str
    client_payload: Dict[str, Any]


@dataclass(frozen=True)
class GatewayEvent:
    """A verified, normalised gateway notification or status lookup."""

    event_id: str
    event_type: str
    outcome: GatewayOutcome
    external_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayRefund:
    refund_id: Optional[str]
    status: str
    payload: Dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """
    One payment provider.

    Implementations raise ``PaymentGatewayException`` for upstream failures
    and ``InvalidSignatureException`` for callbacks that fail verification.
    """

    provider: PaymentProvider

    @property
    def source(self) -> str:
        """Ledger source name for this provider's events."""
        return self.provider.value.lower()

    @abstractmethod
    def charge_currency(self, list_currency: str) -> str:
        """Currency the gateway collects in for a price listed in ``list_currency``."""

    @abstractmethod
    def create_intent(self, request: ChargeRequest) -> GatewayIntent:
        """Open a charge and return what the client needs to complete it."""

    @abstractmethod
    def verify_callback(self, raw_body: bytes, signature: Optional[str]) -> GatewayEvent:
        """Authenticate an inbound notification and normalise it."""

    @abstractmethod
    def refund(self, payment: "Payment", reason: Optional[str] = None) -> GatewayRefund:
        """Refund a completed payment in full."""

    @abstractmethod
    def fetch_status(self, external_reference: str) -> GatewayEvent:
        """Ask the gateway for the current state of a charge."""


class SubscriptionGateway(PaymentGateway):
    """A gateway that can also bill recurring plans."""

    @abstractmethod
    def create_subscription_checkout(
        self, *, order_id: str, amount: Decimal, currency: str, description: str
    ) -> Dict[str, Any]:
        """Client-facing parameters for starting a monthly charge."""

    @abstractmethod
    def unsubscribe(self, order_id: str) -> Dict[str, Any]:
        """Stop future charges of a recurring order."""
