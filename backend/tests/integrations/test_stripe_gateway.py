from decimal import Decimal
import hashlib
import hmac
import json
from types import SimpleNamespace
import time
from unittest.mock import patch

import pytest
import stripe

from app.core.exceptions import InvalidSignatureException, PaymentGatewayException
from app.integrations.payment_gateway import ChargeRequest, GatewayOutcome
from app.integrations.stripe_gateway import StripeGateway, to_minor_units

SECRET = "whsec_test_secret"


def _gateway(secrets=(SECRET,)):
    return StripeGateway(api_key=None, webhook_secrets=list(secrets), publishable_key="pk_test")


def _signed_event(event, secret=SECRET):
    body = json.dumps(event)
    timestamp = int(time.time())
    digest = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{body}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return body.encode("utf-8"), f"t={timestamp},v1={digest}"


def _intent_event(event_type, **obj):
    return {
        "id": "evt_123",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": "pi_123", "object": "payment_intent", **obj}},
    }


def _request(**overrides):
    values = dict(
        order_id="session_s1_1",
        session_id="s1",
        client_id="c1",
        trainer_id="t1",
        amount=Decimal("50.00"),
        currency="USD",
        platform_fee=Decimal("5.00"),
        description="Training session: Legs",
    )
    values.update(overrides)
    return ChargeRequest(**values)


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("50.00")) == 5000
    assert to_minor_units(Decimal("0.015")) == 2


def test_verify_callback_accepts_valid_signature():
    body, header = _signed_event(
        _intent_event("payment_intent.succeeded", latest_charge="ch_1")
    )

    event = _gateway().verify_callback(body, header)

    assert event.event_id == "evt_123"
    assert event.outcome is GatewayOutcome.SUCCEEDED
    assert event.external_reference == "pi_123"
    assert event.transaction_id == "ch_1"


def test_verify_callback_tries_every_secret():
    body, header = _signed_event(_intent_event("payment_intent.succeeded"), secret="whsec_b")

    event = _gateway(secrets=("whsec_a", "whsec_b")).verify_callback(body, header)

    assert event.external_reference == "pi_123"


def test_verify_callback_rejects_bad_or_missing_signature():
    body, header = _signed_event(_intent_event("payment_intent.succeeded"), secret="whsec_other")

    with pytest.raises(InvalidSignatureException):
        _gateway().verify_callback(body, header)
    with pytest.raises(InvalidSignatureException):
        _gateway().verify_callback(body, None)


def test_verify_callback_without_secrets():
    body, header = _signed_event(_intent_event("payment_intent.succeeded"))

    with pytest.raises(PaymentGatewayException):
        _gateway(secrets=()).verify_callback(body, header)


def test_normalize_failure_reason():
    event = _gateway().normalize_event(
        _intent_event(
            "payment_intent.payment_failed", last_payment_error={"message": "Card declined"}
        )
    )

    assert event.outcome is GatewayOutcome.FAILED
    assert event.failure_reason == "Card declined"


def test_normalize_charge_events_use_payment_intent():
    refunded = _gateway().normalize_event(
        {
            "id": "evt_r",
            "type": "charge.refunded",
            "data": {"object": {"id": "ch_9", "payment_intent": "pi_9"}},
        }
    )
    dispute = _gateway().normalize_event(
        {
            "id": "evt_d",
            "type": "charge.dispute.created",
            "data": {"object": {"id": "dp_1", "charge": "ch_9", "payment_intent": "pi_9"}},
        }
    )

    assert (refunded.outcome, refunded.external_reference) == (GatewayOutcome.REFUNDED, "pi_9")
    assert refunded.transaction_id == "ch_9"
    assert (dispute.outcome, dispute.transaction_id) == (GatewayOutcome.DISPUTED, "ch_9")


def test_normalize_unhandled_event_is_ignored():
    event = _gateway().normalize_event({"id": "evt_x", "type": "customer.created", "data": {}})

    assert event.outcome is GatewayOutcome.IGNORED
    assert event.external_reference is None


def test_create_intent_uses_destination_charge():
    intent = SimpleNamespace(id="pi_new", client_secret="pi_new_secret")
    with patch("stripe.PaymentIntent.create", return_value=intent) as create:
        result = _gateway().create_intent(
            _request(destination_account="acct_1", customer_id="cus_1")
        )

    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 5000
    assert kwargs["currency"] == "usd"
    assert kwargs["application_fee_amount"] == 500
    assert kwargs["transfer_data"] == {"destination": "acct_1"}
    assert kwargs["customer"] == "cus_1"
    assert kwargs["idempotency_key"] == "session_payment_session_s1_1"
    assert kwargs["metadata"]["sessionId"] == "s1"
    assert result.external_reference == "pi_new"
    assert result.client_payload["client_secret"] == "pi_new_secret"
    assert result.client_payload["publishable_key"] == "pk_test"


def test_create_intent_without_connect_account():
    intent = SimpleNamespace(id="pi_new", client_secret="secret")
    with patch("stripe.PaymentIntent.create", return_value=intent) as create:
        _gateway().create_intent(_request())

    assert "transfer_data" not in create.call_args.kwargs
    assert "application_fee_amount" not in create.call_args.kwargs


def test_create_intent_error_is_wrapped():
    with patch("stripe.PaymentIntent.create", side_effect=stripe.StripeError("declined")):
        with pytest.raises(PaymentGatewayException):
            _gateway().create_intent(_request())


def test_refund():
    payment = SimpleNamespace(id="pay_1", external_reference="pi_1")
    with patch(
        "stripe.Refund.create", return_value=SimpleNamespace(id="re_1", status="succeeded")
    ) as create:
        refund = _gateway().refund(payment, "Injury")

    assert refund.refund_id == "re_1"
    assert create.call_args.kwargs["payment_intent"] == "pi_1"
    assert create.call_args.kwargs["idempotency_key"] == "refund_pay_1"


@pytest.mark.parametrize(
    "status,last_error,outcome",
    [
        ("succeeded", None, GatewayOutcome.SUCCEEDED),
        ("canceled", None, GatewayOutcome.FAILED),
        ("processing", None, GatewayOutcome.PENDING),
        ("requires_payment_method", SimpleNamespace(message="Declined"), GatewayOutcome.FAILED),
    ],
)
def test_fetch_status(status, last_error, outcome):
    intent = SimpleNamespace(status=status, last_payment_error=last_error, latest_charge="ch_1")
    with patch("stripe.PaymentIntent.retrieve", return_value=intent):
        event = _gateway().fetch_status("pi_1")

    assert event.outcome is outcome
    assert event.event_id == f"sync:pi_1:{status}"
