# backend/app/services/payment_service.py
"""
Payment Service for the trainer booking platform.

Reconciles session payments across Stripe and LiqPay:

- Opening a charge and persisting a PENDING Payment before the client pays
- Applying verified gateway callbacks exactly once through the webhook ledger
- Keeping bookings and session assignment in line with payment outcomes
- Refunds, status sync, history and statistics

Gateways are injected as a provider -> PaymentGateway mapping so the
service never talks to a vendor SDK directly.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
import time
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.enums import (
    BookingStatus,
    CancelledBy,
    PaymentProvider,
    PaymentStatus,
    PaymentType,
    RoleName,
    SessionStatus,
    WebhookStatus,
)
from ..core.exceptions import (
    BookingConflictException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..integrations.payment_gateway import (
    ChargeRequest,
    GatewayEvent,
    GatewayOutcome,
    PaymentGateway,
)
from ..models.payment import Payment
from ..models.session_booking import SessionBooking
from ..models.training_session import TrainingSession
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.payment_schemas import (
    CurrencyTotals,
    PaymentStatsResponse,
    SessionPaymentResponse,
    WebhookResponse,
)
from .access import require_role
from .base import BaseService
from .booking_service import release_client_assignment
from .exchange_rates import CENT, ExchangeRateProvider, StaticExchangeRateProvider, convert
from .webhook_ledger_service import HandlerResult, WebhookLedgerService

logger = logging.getLogger(__name__)

# Outcome of reconciling one event: ledger status, touched payment and booking, note
ReconcileResult = Tuple[WebhookStatus, Optional[Payment], Optional[SessionBooking], Optional[str]]


def calculate_platform_fee(amount: Decimal, percentage: float) -> Decimal:
    """Platform share of ``amount``, rounded half-up to cents."""
    return (amount * Decimal(str(percentage)) / Decimal("100")).quantize(
        CENT, rounding=ROUND_HALF_UP
    )


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PaymentService(BaseService):
    """Service layer for session payments and gateway reconciliation."""

    def __init__(
        self,
        db: Session,
        gateways: Mapping[PaymentProvider, PaymentGateway],
        exchange_rates: Optional[ExchangeRateProvider] = None,
        ledger: Optional[WebhookLedgerService] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.gateways = dict(gateways)
        self.exchange_rates = exchange_rates or StaticExchangeRateProvider(self.config)
        self.ledger = ledger or WebhookLedgerService(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.session_repository = RepositoryFactory.create_training_session_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    def _gateway(self, provider: PaymentProvider | str) -> PaymentGateway:
        key = PaymentProvider(provider)
        gateway = self.gateways.get(key)
        if gateway is None:
            raise ValidationException(
                f"Payment provider {key.value} is not configured",
                code="PROVIDER_NOT_CONFIGURED",
            )
        return gateway

    # ------------------------------------------------------------------
    # Charge creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_session_payment")
    def create_session_payment(
        self,
        client: User,
        session_id: str,
        provider: PaymentProvider = PaymentProvider.STRIPE,
    ) -> SessionPaymentResponse:
        """
        Open a charge for a session and record it as PENDING.

        Raises:
            ForbiddenException: Caller is not a client or the session is someone else's
            NotFoundException: Session does not exist
            ValidationException: Session not payable (status, price, currency)
            BookingConflictException: Another client holds an active booking
            ConflictException: The session is already paid
            PaymentGatewayException: The gateway rejected the charge
        """
        require_role(client, RoleName.CLIENT, action="pay for sessions")
        gateway = self._gateway(provider)

        session = self.session_repository.get_with_booking(session_id)
        if not session:
            raise NotFoundException("Session not found")
        if session.status != SessionStatus.SCHEDULED.value:
            raise ValidationException(
                "Session is not available for payment",
                code="SESSION_NOT_PAYABLE",
                details={"status": session.status},
            )
        if session.client_id and session.client_id != client.id:
            raise ForbiddenException("You can only pay for your own sessions")
        booking = session.booking
        if booking is not None and not booking.is_cancelled and booking.client_id != client.id:
            raise BookingConflictException("Session is already booked by another client")

        price = session.price_amount
        if price is None or price <= 0:
            raise ValidationException("Session price is not set", code="SESSION_PRICE_MISSING")
        if self.payment_repository.get_latest_for_session(session.id, PaymentStatus.COMPLETED):
            raise ConflictException("Session is already paid", code="SESSION_ALREADY_PAID")

        list_currency = session.currency.upper()
        charge_currency = gateway.charge_currency(list_currency)
        try:
            rate = self.exchange_rates.get_rate(list_currency, charge_currency)
        except ValueError as exc:
            raise ValidationException(str(exc), code="EXCHANGE_RATE_UNAVAILABLE") from exc

        platform_fee = calculate_platform_fee(price, self.config.platform_fee_percentage)
        charged_amount = convert(price, rate)
        trainer = self.user_repository.get_by_id(session.trainer_id)
        order_id = f"session_{session.id}_{int(time.time() * 1000)}"

        request = ChargeRequest(
            order_id=order_id,
            session_id=session.id,
            client_id=client.id,
            trainer_id=session.trainer_id,
            amount=charged_amount,
            currency=charge_currency,
            platform_fee=convert(platform_fee, rate),
            description=f"Training session: {session.title}",
            destination_account=trainer.stripe_account_id if trainer else None,
            customer_id=client.stripe_customer_id,
        )
        with self.measure_operation_context("gateway_create_intent"):
            intent = gateway.create_intent(request)

        with self.transaction():
            payment = self.payment_repository.create(
                session_id=session.id,
                client_id=client.id,
                trainer_id=session.trainer_id,
                provider=gateway.provider.value,
                type=PaymentType.SESSION.value,
                amount=price,
                currency=list_currency,
                charged_amount=charged_amount,
                charged_currency=charge_currency,
                exchange_rate=None if rate.is_identity else rate.rate,
                exchange_rate_as_of=None if rate.is_identity else rate.as_of,
                exchange_rate_source=None if rate.is_identity else rate.source,
                platform_fee=platform_fee,
                external_reference=intent.external_reference,
                status=PaymentStatus.PENDING.value,
            )

        prometheus_metrics.record_payment_transition(payment.provider, payment.status)
        self.log_operation(
            "create_session_payment",
            payment_id=payment.id,
            session_id=session.id,
            provider=payment.provider,
        )
        return SessionPaymentResponse(
            payment_id=payment.id,
            provider=payment.provider,
            external_reference=payment.external_reference,
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
            charged_amount=payment.charged_amount,
            charged_currency=payment.charged_currency,
            platform_fee=payment.platform_fee,
            exchange_rate=payment.exchange_rate,
            exchange_rate_as_of=payment.exchange_rate_as_of,
            client_payload=intent.client_payload,
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    @BaseService.measure_operation("handle_callback")
    def handle_callback(
        self, provider: PaymentProvider, raw_body: bytes, signature: Optional[str]
    ) -> WebhookResponse:
        """
        Verify and apply one gateway notification.

        Duplicate deliveries of settled events return ``status="duplicate"``
        without touching any state.
        """
        gateway = self._gateway(provider)
        event = gateway.verify_callback(raw_body, signature)
        return self.apply_event(gateway, event)

    def apply_event(self, gateway: PaymentGateway, event: GatewayEvent) -> WebhookResponse:
        """Claim ``event`` in the ledger and reconcile it if this call owns it."""

        def handle() -> HandlerResult:
            status, payment, booking, note = self._reconcile(gateway, event)
            return HandlerResult(
                status=status,
                related_entity_type="payment" if payment else None,
                related_entity_id=payment.id if payment else None,
                context=(payment, booking, note),
            )

        processed = self.ledger.process(
            source=gateway.source,
            provider=gateway.provider.value,
            event_id=event.event_id,
            event_type=event.event_type,
            payload=event.payload,
            handler=handle,
        )
        if processed.result is None:
            return WebhookResponse(
                status="duplicate",
                event_type=event.event_type,
                event_id=event.event_id,
                message=f"Event already {processed.claim.previous_status or 'recorded'}",
            )

        payment, booking, note = processed.result.context
        if payment is not None and processed.result.status is WebhookStatus.PROCESSED:
            prometheus_metrics.record_payment_transition(payment.provider, payment.status)
        return WebhookResponse(
            status=processed.result.status.value,
            event_type=event.event_type,
            event_id=event.event_id,
            payment_id=payment.id if payment else None,
            payment_status=payment.status if payment else None,
            booking_id=booking.id if booking else None,
            booking_status=booking.status if booking else None,
            message=note,
        )

    def _reconcile(self, gateway: PaymentGateway, event: GatewayEvent) -> ReconcileResult:
        if event.outcome in (GatewayOutcome.PENDING, GatewayOutcome.IGNORED):
            return WebhookStatus.IGNORED, None, None, f"No action for {event.event_type}"
        if not event.external_reference:
            return WebhookStatus.IGNORED, None, None, "Event carries no payment reference"

        found = self.payment_repository.get_by_external_reference(
            gateway.provider.value, event.external_reference
        )
        if found is None or found.type != PaymentType.SESSION.value:
            self.logger.info(
                "No session payment for gateway reference",
                extra={"external_reference": event.external_reference},
            )
            return WebhookStatus.IGNORED, None, None, "Unknown payment"
        payment = self.payment_repository.get_for_update(found.id) or found

        if event.outcome is GatewayOutcome.SUCCEEDED:
            return self._apply_success(payment, event)
        if event.outcome is GatewayOutcome.FAILED:
            return self._apply_failure(payment, event)
        if event.outcome is GatewayOutcome.DISPUTED:
            if payment.status == PaymentStatus.REFUNDED.value:
                return WebhookStatus.IGNORED, payment, None, "Payment already refunded"
            payment.status = PaymentStatus.DISPUTED.value
            if event.transaction_id and not payment.gateway_transaction_id:
                payment.gateway_transaction_id = event.transaction_id
            self.payment_repository.flush()
            return WebhookStatus.PROCESSED, payment, None, "Payment disputed"
        return self._apply_refunded(payment)

    def _apply_success(self, payment: Payment, event: GatewayEvent) -> ReconcileResult:
        if payment.status in (PaymentStatus.REFUNDED.value, PaymentStatus.DISPUTED.value):
            return WebhookStatus.IGNORED, payment, None, f"Payment already {payment.status.lower()}"

        earlier = self.payment_repository.get_latest_for_session(
            payment.session_id, PaymentStatus.COMPLETED, exclude_id=payment.id
        )

        payment.status = PaymentStatus.COMPLETED.value
        payment.completed_at = payment.completed_at or _now_utc()
        payment.failure_reason = None
        if event.transaction_id:
            payment.gateway_transaction_id = event.transaction_id

        if earlier is not None:
            # Captured funds are always recorded; the booking follows the first completed payment
            self.logger.warning(
                "Session already paid by another payment",
                extra={"payment_id": payment.id, "completed_payment_id": earlier.id},
            )
            self.payment_repository.flush()
            return (
                WebhookStatus.PROCESSED,
                payment,
                None,
                "Session is already paid by another payment; refund required",
            )

        booking, note = self._confirm_booking_for(payment)
        self.payment_repository.flush()
        self.log_operation("payment_completed", payment_id=payment.id, session_id=payment.session_id)
        return WebhookStatus.PROCESSED, payment, booking, note

    def _confirm_booking_for(self, payment: Payment) -> Tuple[Optional[SessionBooking], Optional[str]]:
        """Upsert the paying client's booking to CONFIRMED and assign the session."""
        session: Optional[TrainingSession] = self.session_repository.get_with_booking(
            payment.session_id
        )
        if session is None:
            return None, "Session no longer exists"

        booking = session.booking
        note = None
        if booking is None:
            booking = self.booking_repository.create(
                session_id=session.id,
                client_id=payment.client_id,
                status=BookingStatus.PENDING.value,
            )
            session.booking = booking
            booking.confirm(confirmed_by=None)
        elif booking.client_id == payment.client_id:
            if booking.status != BookingStatus.CONFIRMED.value:
                booking.confirm(confirmed_by=None)
        elif booking.is_cancelled:
            booking.client_id = payment.client_id
            booking.message = None
            booking.confirm(confirmed_by=None)
        else:
            self.logger.warning(
                "Paid session is booked by another client",
                extra={"payment_id": payment.id, "booking_id": booking.id},
            )
            return booking, "Session is booked by another client; refund required"

        if session.client_id is None:
            session.client_id = payment.client_id
        return booking, note

    def _apply_failure(self, payment: Payment, event: GatewayEvent) -> ReconcileResult:
        if payment.status not in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value):
            return WebhookStatus.IGNORED, payment, None, f"Payment already {payment.status.lower()}"

        payment.status = PaymentStatus.FAILED.value
        payment.failure_reason = event.failure_reason or "Payment failed"
        if event.transaction_id:
            payment.gateway_transaction_id = event.transaction_id

        booking = None
        session = self.session_repository.get_with_booking(payment.session_id)
        if session is not None:
            booking = session.booking
            if booking is not None and booking.client_id == payment.client_id:
                if not booking.is_cancelled:
                    booking.cancel(CancelledBy.SYSTEM, "Payment failed")
            else:
                booking = None
            release_client_assignment(
                session, payment.client_id, self.config.client_assignment_policy
            )
        self.payment_repository.flush()
        self.log_operation("payment_failed", payment_id=payment.id, reason=payment.failure_reason)
        return WebhookStatus.PROCESSED, payment, booking, None

    def _apply_refunded(self, payment: Payment) -> ReconcileResult:
        if payment.status == PaymentStatus.REFUNDED.value:
            return WebhookStatus.PROCESSED, payment, None, "Refund already recorded"
        if payment.status not in (PaymentStatus.COMPLETED.value, PaymentStatus.DISPUTED.value):
            return WebhookStatus.IGNORED, payment, None, f"Payment is {payment.status.lower()}"
        booking = self._record_refund(payment, refund_id=None, reason=None, cancelled_by=CancelledBy.SYSTEM)
        return WebhookStatus.PROCESSED, payment, booking, "Refund recorded"

    def _record_refund(
        self,
        payment: Payment,
        *,
        refund_id: Optional[str],
        reason: Optional[str],
        cancelled_by: CancelledBy,
    ) -> Optional[SessionBooking]:
        payment.status = PaymentStatus.REFUNDED.value
        payment.refund_id = refund_id or payment.refund_id
        payment.refunded_at = _now_utc()
        payment.refund_reason = reason or payment.refund_reason

        booking = None
        session = self.session_repository.get_with_booking(payment.session_id)
        if session is not None and session.booking is not None:
            booking = session.booking
            if booking.client_id == payment.client_id and not booking.is_cancelled:
                booking.cancel(cancelled_by, reason or "Payment refunded")
            release_client_assignment(
                session, payment.client_id, self.config.client_assignment_policy
            )
        self.payment_repository.flush()
        return booking

    # ------------------------------------------------------------------
    # Actor operations
    # ------------------------------------------------------------------

    @staticmethod
    def _can_access(user: User, payment: Payment) -> bool:
        return user.is_admin or user.id in (payment.client_id, payment.trainer_id)

    @BaseService.measure_operation("sync_payment_status")
    def sync_payment_status(self, user: User, payment_id: str) -> Payment:
        """Pull the current gateway state and reconcile it like a callback."""
        payment = self.payment_repository.get_by_id(payment_id)
        if not payment:
            raise NotFoundException("Payment not found")
        if not self._can_access(user, payment):
            raise ForbiddenException("You do not have access to this payment")

        gateway = self._gateway(payment.provider)
        with self.measure_operation_context("gateway_fetch_status"):
            event = gateway.fetch_status(payment.external_reference)
        self.apply_event(gateway, event)
        self.db.refresh(payment)
        return payment

    @BaseService.measure_operation("refund_session_payment")
    def refund_session_payment(
        self, user: User, session_id: str, reason: Optional[str] = None
    ) -> Payment:
        """
        Refund the completed payment of a session.

        Raises:
            NotFoundException: No session, or no COMPLETED payment for it
            ForbiddenException: Caller is not the trainer, the payer or an admin
            PaymentGatewayException: The gateway refused the refund
        """
        session = self.session_repository.get_with_booking(session_id)
        if not session:
            raise NotFoundException("Session not found")
        payment = self.payment_repository.get_latest_for_session(
            session.id, PaymentStatus.COMPLETED
        )
        if payment is None:
            raise NotFoundException("No completed payment found for this session")
        if not (user.is_admin or user.id in (session.trainer_id, payment.client_id)):
            raise ForbiddenException("You can only refund payments for your own sessions")

        gateway = self._gateway(payment.provider)
        with self.measure_operation_context("gateway_refund"):
            refund = gateway.refund(payment, reason)

        if user.is_admin:
            cancelled_by = CancelledBy.SYSTEM
        elif user.id == payment.client_id:
            cancelled_by = CancelledBy.CLIENT
        else:
            cancelled_by = CancelledBy.TRAINER
        with self.transaction():
            self._record_refund(
                payment, refund_id=refund.refund_id, reason=reason, cancelled_by=cancelled_by
            )

        prometheus_metrics.record_payment_transition(payment.provider, payment.status)
        self.log_operation("refund_session_payment", payment_id=payment.id, refund_id=refund.refund_id)
        return payment

    @BaseService.measure_operation("get_payment_history")
    def get_payment_history(self, user: User, limit: int = 50, offset: int = 0) -> List[Payment]:
        return self.payment_repository.list_for_user(
            user.id, as_trainer=user.is_trainer, limit=limit, offset=offset
        )

    @BaseService.measure_operation("get_payment_stats")
    def get_payment_stats(self, user: User) -> PaymentStatsResponse:
        """
        Counts by status and COMPLETED totals.

        ``total_revenue`` and ``platform_fees`` are expressed in the default
        currency; ``by_currency`` keeps the unconverted per-currency sums.
        """
        as_trainer = user.is_trainer
        counts = self.payment_repository.count_by_status(user.id, as_trainer=as_trainer)
        sums = self.payment_repository.sum_completed_by_currency(user.id, as_trainer=as_trainer)

        base_currency = self.config.default_currency
        total_revenue = Decimal("0")
        total_fees = Decimal("0")
        by_currency: Dict[str, CurrencyTotals] = {}
        for currency, totals in sums.items():
            by_currency[currency] = CurrencyTotals(
                revenue=totals["revenue"], platform_fees=totals["platform_fees"]
            )
            try:
                rate = self.exchange_rates.get_rate(currency, base_currency)
            except ValueError:
                self.logger.warning(
                    "No rate to fold %s into %s payment stats", currency, base_currency
                )
                continue
            total_revenue += convert(totals["revenue"], rate)
            total_fees += convert(totals["platform_fees"], rate)

        return PaymentStatsResponse(
            total_revenue=total_revenue,
            total_payments=sum(counts.values()),
            completed=counts.get(PaymentStatus.COMPLETED.value, 0),
            pending=counts.get(PaymentStatus.PENDING.value, 0),
            failed=counts.get(PaymentStatus.FAILED.value, 0),
            refunded=counts.get(PaymentStatus.REFUNDED.value, 0),
            disputed=counts.get(PaymentStatus.DISPUTED.value, 0),
            platform_fees=total_fees,
            by_currency=by_currency,
        )
