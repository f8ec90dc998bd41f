"""
Payment-related Pydantic schemas.

Defines request and response models for session payments through Stripe
and LiqPay, refunds, history, statistics and gateway callbacks.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.enums import PaymentProvider
from .base import Money, ORMResponse, StrictModel, StrictRequestModel

# ========== Request Models ==========


class CreateSessionPaymentRequest(StrictRequestModel):
    """Start paying for a training session."""

    session_id: str = Field(..., description="Training session to pay for")
    provider: PaymentProvider = Field(
        default=PaymentProvider.STRIPE, description="Gateway to charge through"
    )


class RefundSessionPaymentRequest(StrictRequestModel):
    session_id: str = Field(..., description="Session whose completed payment should be refunded")
    reason: Optional[str] = Field(default=None, max_length=500)


# ========== Response Models ==========


class SessionPaymentResponse(StrictModel):
    """Client-facing parameters for completing a payment."""

    payment_id: str = Field(..., description="Internal payment id")
    provider: str
    external_reference: str = Field(
        ..., description="Stripe PaymentIntent id or LiqPay order id"
    )
    status: str
    amount: Money = Field(..., description="Session list price")
    currency: str
    charged_amount: Money = Field(..., description="Amount the gateway will collect")
    charged_currency: str
    platform_fee: Money
    exchange_rate: Optional[Money] = None
    exchange_rate_as_of: Optional[datetime] = None
    client_payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Stripe: client_secret. LiqPay: data, signature, checkout_url",
    )


class PaymentResponse(ORMResponse):
    id: str
    session_id: Optional[str] = None
    subscription_id: Optional[str] = None
    client_id: Optional[str] = None
    trainer_id: str
    provider: str
    type: str
    amount: Money
    currency: str
    charged_amount: Money
    charged_currency: str
    exchange_rate: Optional[Money] = None
    exchange_rate_as_of: Optional[datetime] = None
    platform_fee: Money
    external_reference: str
    gateway_transaction_id: Optional[str] = None
    status: str
    failure_reason: Optional[str] = None
    refund_id: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PaymentHistoryResponse(StrictModel):
    items: List[PaymentResponse]
    limit: int
    offset: int


class CurrencyTotals(StrictModel):
    revenue: Money
    platform_fees: Money


class PaymentStatsResponse(StrictModel):
    total_revenue: Money = Field(..., description="Sum of COMPLETED payment amounts")
    total_payments: int
    completed: int
    pending: int
    failed: int
    refunded: int
    disputed: int
    platform_fees: Money
    by_currency: Dict[str, CurrencyTotals] = Field(default_factory=dict)


class WebhookResponse(StrictModel):
    """Response for webhook processing."""

    status: str = Field(..., description="Processing status (processed, ignored, duplicate)")
    event_type: str = Field(..., description="Gateway event type")
    event_id: Optional[str] = None
    payment_id: Optional[str] = None
    payment_status: Optional[str] = None
    booking_id: Optional[str] = None
    booking_status: Optional[str] = None
    message: Optional[str] = Field(None, description="Additional information")
