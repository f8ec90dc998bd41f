"""Trainer subscription schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import Money, ORMResponse, StrictModel, StrictRequestModel


class PlanLimits(StrictModel):
    clients: int = Field(..., description="-1 means unlimited")
    workouts: int
    sessions: int


class PlanResponse(StrictModel):
    id: str
    name: str
    price: Money
    currency: str
    interval: str
    features: List[str]
    limits: PlanLimits


class CreateSubscriptionRequest(StrictRequestModel):
    plan_id: str = Field(..., description="basic, pro or premium")


class CancelSubscriptionRequest(StrictRequestModel):
    immediately: bool = Field(
        default=False, description="End access now instead of at the period end"
    )


class SubscriptionResponse(ORMResponse):
    id: str
    user_id: str
    plan_id: str
    plan_name: str
    price: Money
    currency: str
    interval: str
    status: str
    external_reference: str
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    canceled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SubscriptionCheckoutResponse(StrictModel):
    subscription: SubscriptionResponse
    order_id: str
    charged_amount: Money
    charged_currency: str
    client_payload: Dict[str, Any] = Field(default_factory=dict)


class CurrentSubscriptionResponse(StrictModel):
    subscription: Optional[SubscriptionResponse] = None
    plan: Optional[PlanResponse] = None


class CancelSubscriptionResponse(StrictModel):
    success: bool
    immediately: bool
    subscription: SubscriptionResponse


class UsageCounts(StrictModel):
    active_clients: int
    total_sessions: int


class SubscriptionUsageResponse(StrictModel):
    plan: Optional[PlanResponse] = None
    limits: PlanLimits
    usage: UsageCounts
