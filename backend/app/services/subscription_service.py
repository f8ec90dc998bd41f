# backend/app/services/subscription_service.py
"""
Subscription Service for the trainer booking platform.

Trainers pay a monthly plan through LiqPay's recurring ``subscribe``
action. A subscription starts ``pending``, becomes ``active`` or
``failed`` from the gateway callback, and ends ``canceled``. The
trainer's ``subscription_plan``/``subscription_status`` mirror the result.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import logging
import time
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.enums import RoleName, SubscriptionStatus, WebhookStatus
from ..core.exceptions import ConflictException, NotFoundException, ValidationException
from ..integrations.payment_gateway import GatewayEvent, GatewayOutcome, SubscriptionGateway
from ..models.subscription import Subscription
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.payment_schemas import WebhookResponse
from ..schemas.subscription import (
    CancelSubscriptionResponse,
    CurrentSubscriptionResponse,
    PlanLimits,
    PlanResponse,
    SubscriptionCheckoutResponse,
    SubscriptionResponse,
    SubscriptionUsageResponse,
    UsageCounts,
)
from .access import require_role
from .base import BaseService
from .exchange_rates import ExchangeRateProvider, StaticExchangeRateProvider, convert
from .webhook_ledger_service import HandlerResult, WebhookLedgerService

logger = logging.getLogger(__name__)

BILLING_PERIOD = timedelta(days=30)
ACTIVE_CLIENT_WINDOW = timedelta(days=30)
UNLIMITED = -1


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: Decimal
    currency: str
    interval: str
    features: Tuple[str, ...]
    limits: Dict[str, int]

    def to_response(self) -> PlanResponse:
        return PlanResponse(
            id=self.id,
            name=self.name,
            price=self.price,
            currency=self.currency,
            interval=self.interval,
            features=list(self.features),
            limits=PlanLimits(**self.limits),
        )


PLANS: Dict[str, Plan] = {
    "basic": Plan(
        id="basic",
        name="Basic",
        price=Decimal("19"),
        currency="USD",
        interval="month",
        features=(
            "Up to 20 clients",
            "Basic workout builder",
            "Session scheduling",
            "Email support",
        ),
        limits={"clients": 20, "workouts": 50, "sessions": 100},
    ),
    "pro": Plan(
        id="pro",
        name="Pro",
        price=Decimal("49"),
        currency="USD",
        interval="month",
        features=(
            "Up to 100 clients",
            "Advanced workout builder",
            "Automated scheduling",
            "Progress tracking",
            "Video sessions",
            "Priority support",
        ),
        limits={"clients": 100, "workouts": 200, "sessions": 500},
    ),
    "premium": Plan(
        id="premium",
        name="Premium",
        price=Decimal("99"),
        currency="USD",
        interval="month",
        features=(
            "Unlimited clients",
            "White-label solution",
            "Custom branding",
            "Advanced analytics",
            "API access",
            "Dedicated support",
        ),
        limits={"clients": UNLIMITED, "workouts": UNLIMITED, "sessions": UNLIMITED},
    ),
}

DEFAULT_PLAN_ID = "basic"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionService(BaseService):
    """Service layer for trainer subscriptions."""

    def __init__(
        self,
        db: Session,
        gateway: SubscriptionGateway,
        exchange_rates: Optional[ExchangeRateProvider] = None,
        ledger: Optional[WebhookLedgerService] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.gateway = gateway
        self.exchange_rates = exchange_rates or StaticExchangeRateProvider(self.config)
        self.ledger = ledger or WebhookLedgerService(db)
        self.repository = RepositoryFactory.create_subscription_repository(db)
        self.session_repository = RepositoryFactory.create_training_session_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    @staticmethod
    def _plan(plan_id: str) -> Plan:
        plan = PLANS.get(plan_id)
        if plan is None:
            raise ValidationException(
                "Invalid subscription plan",
                code="INVALID_PLAN",
                details={"plan_id": plan_id, "available": sorted(PLANS)},
            )
        return plan

    def get_plans(self) -> List[PlanResponse]:
        return [plan.to_response() for plan in PLANS.values()]

    def _start(self, trainer: User, plan: Plan) -> SubscriptionCheckoutResponse:
        charge_currency = self.gateway.charge_currency(plan.currency)
        try:
            rate = self.exchange_rates.get_rate(plan.currency, charge_currency)
        except ValueError as exc:
            raise ValidationException(str(exc), code="EXCHANGE_RATE_UNAVAILABLE") from exc
        charged_amount = convert(plan.price, rate)
        order_id = f"subscription_{trainer.id}_{plan.id}_{int(time.time() * 1000)}"

        with self.measure_operation_context("gateway_subscription_checkout"):
            checkout = self.gateway.create_subscription_checkout(
                order_id=order_id,
                amount=charged_amount,
                currency=charge_currency,
                description=f"Subscription plan: {plan.name}",
            )

        now = _now_utc()
        with self.transaction():
            subscription = self.repository.create(
                user_id=trainer.id,
                plan_id=plan.id,
                plan_name=plan.name,
                price=plan.price,
                currency=plan.currency,
                interval=plan.interval,
                status=SubscriptionStatus.PENDING.value,
                external_reference=order_id,
                current_period_start=now,
                current_period_end=now + BILLING_PERIOD,
                cancel_at_period_end=False,
            )

        self.log_operation(
            "create_subscription", subscription_id=subscription.id, plan_id=plan.id
        )
        return SubscriptionCheckoutResponse(
            subscription=SubscriptionResponse.model_validate(subscription),
            order_id=order_id,
            charged_amount=charged_amount,
            charged_currency=charge_currency,
            client_payload=checkout,
        )

    @BaseService.measure_operation("create_subscription")
    def create_subscription(self, trainer: User, plan_id: str) -> SubscriptionCheckoutResponse:
        """
        Start a pending subscription and return the LiqPay checkout for it.

        Raises:
            ForbiddenException: Caller is not a trainer
            ValidationException: Unknown plan
            ConflictException: A pending or active subscription already exists
        """
        require_role(trainer, RoleName.TRAINER, action="subscribe to a plan")
        plan = self._plan(plan_id)
        existing = self.repository.get_open_for_user(trainer.id)
        if existing is not None:
            raise ConflictException(
                "Trainer already has an active subscription",
                code="SUBSCRIPTION_EXISTS",
                details={"subscription_id": existing.id, "status": existing.status},
            )
        return self._start(trainer, plan)

    def _end(self, subscription: Subscription, *, immediately: bool) -> None:
        if subscription.status == SubscriptionStatus.ACTIVE.value:
            with self.measure_operation_context("gateway_unsubscribe"):
                self.gateway.unsubscribe(subscription.external_reference)
        subscription.status = SubscriptionStatus.CANCELED.value
        subscription.canceled_at = _now_utc()
        subscription.cancel_at_period_end = not immediately

    @BaseService.measure_operation("change_plan")
    def change_plan(self, trainer: User, plan_id: str) -> SubscriptionCheckoutResponse:
        """Cancel the current subscription immediately and start one on ``plan_id``."""
        require_role(trainer, RoleName.TRAINER, action="change plans")
        plan = self._plan(plan_id)
        current = self.repository.get_open_for_user(trainer.id)
        if current is not None:
            if current.plan_id == plan.id:
                raise ValidationException(
                    "Already subscribed to this plan", code="SAME_PLAN"
                )
            with self.transaction():
                self._end(current, immediately=True)
                trainer.subscription_plan = None
                trainer.subscription_status = SubscriptionStatus.CANCELED.value
                self.repository.flush()
        return self._start(trainer, plan)

    @BaseService.measure_operation("cancel_subscription")
    def cancel_subscription(self, trainer: User, immediately: bool = False) -> CancelSubscriptionResponse:
        """
        Stop billing. Without ``immediately`` the trainer keeps the plan until
        the current period ends.
        """
        require_role(trainer, RoleName.TRAINER, action="cancel subscriptions")
        subscription = self.repository.get_open_for_user(trainer.id)
        if subscription is None:
            raise NotFoundException("No active subscription found")

        with self.transaction():
            was_active = subscription.status == SubscriptionStatus.ACTIVE.value
            self._end(subscription, immediately=immediately)
            trainer.subscription_plan = (
                subscription.plan_id if was_active and not immediately else None
            )
            trainer.subscription_status = SubscriptionStatus.CANCELED.value
            self.repository.flush()

        self.log_operation(
            "cancel_subscription", subscription_id=subscription.id, immediately=immediately
        )
        return CancelSubscriptionResponse(
            success=True,
            immediately=immediately,
            subscription=SubscriptionResponse.model_validate(subscription),
        )

    @BaseService.measure_operation("get_current_subscription")
    def get_current_subscription(self, trainer: User) -> CurrentSubscriptionResponse:
        subscription = self.repository.get_latest_for_user(trainer.id)
        if subscription is None:
            return CurrentSubscriptionResponse()
        plan = PLANS.get(subscription.plan_id)
        return CurrentSubscriptionResponse(
            subscription=SubscriptionResponse.model_validate(subscription),
            plan=plan.to_response() if plan else None,
        )

    @BaseService.measure_operation("get_usage")
    def get_usage(self, trainer: User) -> SubscriptionUsageResponse:
        """Plan limits next to distinct clients of the last 30 days and all sessions."""
        require_role(trainer, RoleName.TRAINER, action="view subscription usage")
        plan = PLANS.get(trainer.subscription_plan or "")
        limits = (plan or PLANS[DEFAULT_PLAN_ID]).limits
        since: date = (_now_utc() - ACTIVE_CLIENT_WINDOW).date()
        return SubscriptionUsageResponse(
            plan=plan.to_response() if plan else None,
            limits=PlanLimits(**limits),
            usage=UsageCounts(
                active_clients=self.session_repository.count_distinct_clients_since(
                    trainer.id, since
                ),
                total_sessions=self.session_repository.count_for_trainer(trainer.id),
            ),
        )

    # ------------------------------------------------------------------
    # Gateway callbacks
    # ------------------------------------------------------------------

    @BaseService.measure_operation("handle_subscription_callback")
    def handle_callback(self, raw_body: bytes, signature: Optional[str]) -> WebhookResponse:
        event = self.gateway.verify_callback(raw_body, signature)
        processed = self.ledger.process(
            source=self.gateway.source,
            provider=self.gateway.provider.value,
            event_id=event.event_id,
            event_type=event.event_type,
            payload=event.payload,
            handler=lambda: self._reconcile(event),
        )
        if processed.result is None:
            return WebhookResponse(
                status="duplicate",
                event_type=event.event_type,
                event_id=event.event_id,
                message=f"Event already {processed.claim.previous_status or 'recorded'}",
            )
        return WebhookResponse(
            status=processed.result.status.value,
            event_type=event.event_type,
            event_id=event.event_id,
            message=processed.result.context,
        )

    def _reconcile(self, event: GatewayEvent) -> HandlerResult:
        subscription = (
            self.repository.get_by_external_reference(event.external_reference)
            if event.external_reference
            else None
        )
        if subscription is None:
            self.logger.info(
                "Subscription not found for order",
                extra={"order_id": event.external_reference},
            )
            return HandlerResult(status=WebhookStatus.IGNORED, context="Unknown subscription")
        if subscription.status == SubscriptionStatus.CANCELED.value:
            return HandlerResult(
                status=WebhookStatus.IGNORED,
                related_entity_type="subscription",
                related_entity_id=subscription.id,
                context="Subscription is canceled",
            )

        if event.outcome is GatewayOutcome.SUCCEEDED:
            now = _now_utc()
            subscription.status = SubscriptionStatus.ACTIVE.value
            subscription.current_period_start = now
            subscription.current_period_end = now + BILLING_PERIOD
        elif event.outcome is GatewayOutcome.FAILED:
            subscription.status = SubscriptionStatus.FAILED.value
        else:
            return HandlerResult(
                status=WebhookStatus.IGNORED,
                related_entity_type="subscription",
                related_entity_id=subscription.id,
                context=f"No action for status {event.payload.get('status')}",
            )

        trainer = self.user_repository.get_by_id(subscription.user_id)
        if trainer is not None:
            active = subscription.status == SubscriptionStatus.ACTIVE.value
            trainer.subscription_plan = subscription.plan_id if active else None
            trainer.subscription_status = subscription.status
        self.repository.flush()
        self.log_operation(
            "subscription_callback", subscription_id=subscription.id, status=subscription.status
        )
        return HandlerResult(
            status=WebhookStatus.PROCESSED,
            related_entity_type="subscription",
            related_entity_id=subscription.id,
            context=f"Subscription {subscription.status}",
        )
