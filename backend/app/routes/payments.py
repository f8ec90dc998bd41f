# backend/app/routes/payments.py
"""
Payment routes for session charges and gateway callbacks.

Key Features:
- Opening Stripe PaymentIntents or LiqPay checkouts for a booked session
- Signature-verified Stripe webhooks and LiqPay server callbacks
- Exactly-once reconciliation through the webhook ledger
- Refunds, manual status sync, history and statistics
"""

import asyncio
import json
import logging
from typing import NoReturn, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..api.dependencies import (
    get_current_user,
    get_payment_service,
    get_subscription_service,
    require_client,
)
from ..core.enums import PaymentProvider
from ..core.exceptions import DomainException
from ..models.user import User
from ..schemas.payment_schemas import (
    CreateSessionPaymentRequest,
    PaymentHistoryResponse,
    PaymentResponse,
    PaymentStatsResponse,
    RefundSessionPaymentRequest,
    SessionPaymentResponse,
    WebhookResponse,
)
from ..services.payment_service import PaymentService
from ..services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


async def _extract_liqpay_fields(request: Request) -> Tuple[bytes, Optional[str]]:
    """
    Return the raw ``data`` field and ``signature`` of a LiqPay callback.

    LiqPay posts ``application/x-www-form-urlencoded``; JSON bodies with the
    same two fields are accepted as well.
    """
    content_type = (request.headers.get("content-type") or "").lower()
    if content_type.startswith("application/json"):
        try:
            body = json.loads(await request.body())
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body"
            ) from exc
        if not isinstance(body, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body"
            )
        data, signature = body.get("data"), body.get("signature")
    else:
        form = await request.form()
        data, signature = form.get("data"), form.get("signature")

    if not isinstance(data, str) or not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing LiqPay data field"
        )
    return data.encode("utf-8"), signature if isinstance(signature, str) else None


# ========== Session payments ==========


@router.post(
    "/session/create",
    response_model=SessionPaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session_payment(
    payload: CreateSessionPaymentRequest,
    current_user: User = Depends(require_client),
    payment_service: PaymentService = Depends(get_payment_service),
) -> SessionPaymentResponse:
    """
    Start paying for a booked session.

    Stripe returns a PaymentIntent ``client_secret``; LiqPay returns the
    signed ``data``/``signature`` pair and checkout URL for the hosted form.
    """
    try:
        return await asyncio.to_thread(
            payment_service.create_session_payment,
            current_user,
            payload.session_id,
            payload.provider,
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.post("/session/refund", response_model=PaymentResponse)
async def refund_session_payment(
    payload: RefundSessionPaymentRequest,
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(
            payment_service.refund_session_payment,
            current_user,
            payload.session_id,
            payload.reason,
        )
        return PaymentResponse.model_validate(payment)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/history", response_model=PaymentHistoryResponse)
async def get_payment_history(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentHistoryResponse:
    """Payments where the caller is the payer, or the payee when a trainer."""
    try:
        payments = await asyncio.to_thread(
            payment_service.get_payment_history, current_user, limit, offset
        )
        return PaymentHistoryResponse(
            items=[PaymentResponse.model_validate(payment) for payment in payments],
            limit=limit,
            offset=offset,
        )
    except DomainException as exc:
        handle_domain_exception(exc)


@router.get("/stats", response_model=PaymentStatsResponse)
async def get_payment_stats(
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentStatsResponse:
    try:
        return await asyncio.to_thread(payment_service.get_payment_stats, current_user)
    except DomainException as exc:
        handle_domain_exception(exc)


@router.post("/{payment_id}/sync", response_model=PaymentResponse)
async def sync_payment_status(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Ask the gateway for the charge's state and reconcile it like a callback."""
    try:
        payment = await asyncio.to_thread(
            payment_service.sync_payment_status, current_user, payment_id
        )
        return PaymentResponse.model_validate(payment)
    except DomainException as exc:
        handle_domain_exception(exc)


# ========== Gateway callbacks ==========


@router.post("/webhooks/stripe", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookResponse:
    """
    Handle Stripe payment webhook events.

    Processes events like:
    - payment_intent.succeeded
    - payment_intent.payment_failed
    - charge.refunded
    - charge.dispute.created

    Raises:
        HTTPException: 400 for a missing or invalid signature, or when
            processing fails and Stripe should redeliver
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        logger.warning("Missing Stripe signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing stripe-signature header"
        )
    try:
        result = await asyncio.to_thread(
            payment_service.handle_callback, PaymentProvider.STRIPE, payload, signature
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    logger.info(f"Processed Stripe webhook {result.event_type}: {result.status}")
    return result


@router.post("/liqpay/callback", response_model=WebhookResponse)
async def handle_liqpay_callback(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookResponse:
    """LiqPay server-to-server notification for a session payment."""
    data, signature = await _extract_liqpay_fields(request)
    try:
        result = await asyncio.to_thread(
            payment_service.handle_callback, PaymentProvider.LIQPAY, data, signature
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    logger.info(f"Processed LiqPay callback {result.event_type}: {result.status}")
    return result


@router.post("/liqpay/subscription-callback", response_model=WebhookResponse)
async def handle_liqpay_subscription_callback(
    request: Request,
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> WebhookResponse:
    """LiqPay notification for a recurring subscription charge."""
    data, signature = await _extract_liqpay_fields(request)
    try:
        result = await asyncio.to_thread(subscription_service.handle_callback, data, signature)
    except DomainException as exc:
        handle_domain_exception(exc)
    logger.info(f"Processed LiqPay subscription callback: {result.status}")
    return result
