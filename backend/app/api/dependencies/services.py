# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging
from typing import Dict

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import Settings, settings
from ...core.enums import PaymentProvider
from ...core.exceptions import ServiceException
from ...integrations import (
    FakePaymentGateway,
    LiqPayClient,
    LiqPayGateway,
    PaymentGateway,
    StripeGateway,
    SubscriptionGateway,
)
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.exchange_rates import ExchangeRateProvider, StaticExchangeRateProvider
from ...services.payment_service import PaymentService
from ...services.subscription_service import SubscriptionService
from ...services.training_session_service import TrainingSessionService
from ...services.webhook_ledger_service import WebhookLedgerService
from .database import get_db

logger = logging.getLogger(__name__)


def build_payment_gateways(config: Settings) -> Dict[PaymentProvider, PaymentGateway]:
    """
    Instantiate the gateways the current configuration enables.

    ``payments_fake`` swaps both providers for in-memory fakes; otherwise a
    provider is only registered once its credentials are present.
    """
    if config.payments_fake:
        if config.is_production:
            raise RuntimeError("payments_fake cannot be enabled in production")
        logger.warning("Using fake payment gateways")
        return {provider: FakePaymentGateway(provider) for provider in PaymentProvider}

    gateways: Dict[PaymentProvider, PaymentGateway] = {}
    if config.stripe_secret_key.get_secret_value():
        gateways[PaymentProvider.STRIPE] = StripeGateway(
            api_key=config.stripe_secret_key,
            webhook_secrets=config.webhook_secrets,
            publishable_key=config.stripe_publishable_key,
        )
    if config.liqpay_public_key and config.liqpay_private_key.get_secret_value():
        client = LiqPayClient(
            public_key=config.liqpay_public_key,
            private_key=config.liqpay_private_key,
            api_url=config.liqpay_api_url,
            checkout_url=config.liqpay_checkout_url,
            sandbox=config.liqpay_sandbox,
            timeout=config.liqpay_timeout_seconds,
        )
        gateways[PaymentProvider.LIQPAY] = LiqPayGateway(
            client, frontend_url=config.frontend_url, backend_url=config.backend_url
        )
    if not gateways:
        logger.warning("No payment gateway is configured")
    return gateways


@lru_cache(maxsize=1)
def get_payment_gateways() -> Dict[PaymentProvider, PaymentGateway]:
    """Process-wide gateway registry."""
    return build_payment_gateways(settings)


def get_subscription_gateway(
    gateways: Dict[PaymentProvider, PaymentGateway] = Depends(get_payment_gateways),
) -> SubscriptionGateway:
    gateway = gateways.get(PaymentProvider.LIQPAY)
    if not isinstance(gateway, SubscriptionGateway):
        raise ServiceException(
            "Subscription billing is not configured", code="SUBSCRIPTIONS_UNAVAILABLE"
        ).to_http_exception()
    return gateway


@lru_cache(maxsize=1)
def get_exchange_rate_provider() -> ExchangeRateProvider:
    return StaticExchangeRateProvider(settings)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Provide availability service instance for dependency injection."""
    return AvailabilityService(db)


def get_training_session_service(
    db: Session = Depends(get_db),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> TrainingSessionService:
    return TrainingSessionService(
        db,
        availability_service=availability_service,
        enforce_availability=settings.enforce_trainer_availability,
    )


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db, assignment_policy=settings.client_assignment_policy)


def get_webhook_ledger_service(db: Session = Depends(get_db)) -> WebhookLedgerService:
    return WebhookLedgerService(db)


def get_payment_service(
    db: Session = Depends(get_db),
    gateways: Dict[PaymentProvider, PaymentGateway] = Depends(get_payment_gateways),
    exchange_rates: ExchangeRateProvider = Depends(get_exchange_rate_provider),
    ledger: WebhookLedgerService = Depends(get_webhook_ledger_service),
) -> PaymentService:
    """
    Get payment service instance with all dependencies.

    Args:
        db: Database session
        gateways: Configured payment gateways keyed by provider
        exchange_rates: Rate source for cross-currency charges
        ledger: Webhook idempotency ledger

    Returns:
        PaymentService instance
    """
    return PaymentService(db, gateways, exchange_rates=exchange_rates, ledger=ledger)


def get_subscription_service(
    db: Session = Depends(get_db),
    gateway: SubscriptionGateway = Depends(get_subscription_gateway),
    exchange_rates: ExchangeRateProvider = Depends(get_exchange_rate_provider),
    ledger: WebhookLedgerService = Depends(get_webhook_ledger_service),
) -> SubscriptionService:
    return SubscriptionService(db, gateway, exchange_rates=exchange_rates, ledger=ledger)
