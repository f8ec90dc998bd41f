# backend/app/routes/subscriptions.py
"""
Trainer subscription routes under /subscriptions.

Endpoints:
    GET /plans - Plan catalogue
    GET /current - Latest subscription of the caller
    GET /usage - Plan limits against current usage
    POST / - Start a subscription (LiqPay checkout)
    PATCH / - Switch to another plan
    POST /cancel - Cancel now or at the period end
"""

import asyncio
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..api.dependencies import get_subscription_service, require_trainer
from ..core.exceptions import DomainException
from ..models.user import User
from ..schemas.subscription import (
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    CreateSubscriptionRequest,
    CurrentSubscriptionResponse,
    PlanResponse,
    SubscriptionCheckoutResponse,
    SubscriptionUsageResponse,
)
from ..services.subscription_service import PLANS, SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/plans", response_model=List[PlanResponse])
async def get_plans() -> List[PlanResponse]:
    """Public plan catalogue; prices are listed in USD."""
    return [plan.to_response() for plan in PLANS.values()]


@router.get("/current", response_model=CurrentSubscriptionResponse)
async def get_current_subscription(
    current_user: User = Depends(require_trainer),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> CurrentSubscriptionResponse:
    try:
        return await asyncio.to_thread(
            subscription_service.get_current_subscription, current_user
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/usage", response_model=SubscriptionUsageResponse)
async def get_usage(
    current_user: User = Depends(require_trainer),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionUsageResponse:
    try:
        return await asyncio.to_thread(subscription_service.get_usage, current_user)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.post(
    "",
    response_model=SubscriptionCheckoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    payload: CreateSubscriptionRequest,
    current_user: User = Depends(require_trainer),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionCheckoutResponse:
    """Start a pending subscription; it activates when LiqPay reports the first charge."""
    try:
        return await asyncio.to_thread(
            subscription_service.create_subscription, current_user, payload.plan_id
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.patch("", response_model=SubscriptionCheckoutResponse)
async def change_plan(
    payload: CreateSubscriptionRequest,
    current_user: User = Depends(require_trainer),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionCheckoutResponse:
    try:
        return await asyncio.to_thread(
            subscription_service.change_plan, current_user, payload.plan_id
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.post("/cancel", response_model=CancelSubscriptionResponse)
async def cancel_subscription(
    payload: Optional[CancelSubscriptionRequest] = None,
    current_user: User = Depends(require_trainer),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> CancelSubscriptionResponse:
    try:
        return await asyncio.to_thread(
            subscription_service.cancel_subscription,
            current_user,
            payload.immediately if payload else False,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
