from decimal import Decimal
from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest

from app.core.exceptions import InvalidSignatureException, PaymentGatewayException
from app.integrations.liqpay_client import (
    LiqPayClient,
    LiqPayError,
    decode_data,
    encode_data,
    sign,
    verify_signature,
)
from app.integrations.liqpay_gateway import LiqPayGateway, liqpay_amount
from app.integrations.payment_gateway import ChargeRequest, GatewayOutcome

PUBLIC_KEY = "sandbox_public"
PRIVATE_KEY = "sandbox_private"


def _client(handler=None, **kwargs):
    transport = httpx.MockTransport(handler) if handler else None
    return LiqPayClient(
        public_key=PUBLIC_KEY, private_key=PRIVATE_KEY, transport=transport, **kwargs
    )


def _gateway(handler=None):
    return LiqPayGateway(
        _client(handler), frontend_url="https://app.test/", backend_url="https://api.test"
    )


def _signed(payload):
    data = encode_data(payload)
    return data.encode("ascii"), sign(PRIVATE_KEY, data)


def _form(request: httpx.Request):
    fields = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
    assert verify_signature(PRIVATE_KEY, fields["data"], fields["signature"])
    return decode_data(fields["data"])


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


def test_signature_matches_known_vector():
    # base64(sha1("private" + "data" + "private"))
    assert sign("private", "data") == "+oP3tDcYk+HijfJ9h4iW1n6Qr60="


def test_verify_signature_rejects_tampering():
    data = encode_data({"order_id": "session_1"})
    signature = sign(PRIVATE_KEY, data)

    assert verify_signature(PRIVATE_KEY, data, signature)
    assert not verify_signature("other_key", data, signature)
    assert not verify_signature(PRIVATE_KEY, data + "x", signature)
    assert not verify_signature(PRIVATE_KEY, "", signature)


def test_decode_data_errors():
    with pytest.raises(ValueError):
        decode_data("not base64 !!")
    with pytest.raises(ValueError):
        decode_data(encode_data(["a", "list"]))  # type: ignore[arg-type]


def test_sign_params_fills_defaults():
    signed = _client(sandbox=True).sign_params({"action": "pay", "description": None})

    assert decode_data(signed["data"]) == {
        "public_key": PUBLIC_KEY,
        "version": 3,
        "sandbox": 1,
        "action": "pay",
    }
    assert signed["signature"] == sign(PRIVATE_KEY, signed["data"])


def test_missing_keys_rejected():
    with pytest.raises(ValueError):
        LiqPayClient(public_key="", private_key=PRIVATE_KEY)


def test_request_posts_signed_form():
    seen = {}

    def handler(request):
        seen.update(_form(request))
        return httpx.Response(200, json={"result": "ok", "status": "success"})

    response = _client(handler).status("session_1")

    assert response["status"] == "success"
    assert seen["action"] == "status"
    assert seen["order_id"] == "session_1"


def test_request_error_result_raises():
    def handler(request):
        return httpx.Response(
            200, json={"result": "error", "err_code": "order_not_found", "err_description": "Nope"}
        )

    with pytest.raises(LiqPayError) as exc_info:
        _client(handler).status("session_1")
    assert str(exc_info.value) == "Nope"
    assert exc_info.value.error_code == "order_not_found"


def test_request_http_error_raises():
    with pytest.raises(LiqPayError) as exc_info:
        _client(lambda request: httpx.Response(500, text="boom")).status("session_1")
    assert exc_info.value.status_code == 500


def test_request_bad_json_raises():
    with pytest.raises(LiqPayError):
        _client(lambda request: httpx.Response(200, text="<html>")).status("session_1")


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


def test_amounts_are_whole_when_possible():
    assert liqpay_amount(Decimal("2050")) == 2050
    assert isinstance(liqpay_amount(Decimal("2050.00")), int)
    assert liqpay_amount(Decimal("12.5")) == 12.5


def test_create_intent_builds_checkout():
    intent = _gateway().create_intent(
        ChargeRequest(
            order_id="session_abc_1",
            session_id="abc",
            client_id="c",
            trainer_id="t",
            amount=Decimal("2050"),
            currency="UAH",
            platform_fee=Decimal("205"),
            description="Training session: Legs",
        )
    )

    assert intent.external_reference == "session_abc_1"
    params = decode_data(intent.client_payload["data"])
    assert params["amount"] == 2050
    assert params["server_url"] == "https://api.test/payments/liqpay/callback"
    assert params["result_url"] == "https://app.test/payment-success"
    assert intent.client_payload["checkout_url"].endswith("/checkout")


@pytest.mark.parametrize(
    "status,outcome",
    [
        ("success", GatewayOutcome.SUCCEEDED),
        ("sandbox", GatewayOutcome.SUCCEEDED),
        ("failure", GatewayOutcome.FAILED),
        ("reversed", GatewayOutcome.REFUNDED),
        ("processing", GatewayOutcome.PENDING),
    ],
)
def test_verify_callback_maps_status(status, outcome):
    body, signature = _signed(
        {"action": "pay", "order_id": "session_1", "payment_id": 77, "status": status}
    )

    event = _gateway().verify_callback(body, signature)

    assert event.outcome is outcome
    assert event.event_id == f"session_1:77:{status}"
    assert event.external_reference == "session_1"
    assert event.transaction_id == "77"


def test_verify_callback_without_payment_id():
    body, signature = _signed(
        {"order_id": "session_1", "status": "failure", "err_description": "Card blocked"}
    )

    event = _gateway().verify_callback(body, signature)

    assert event.event_id == "session_1:failure"
    assert event.failure_reason == "Card blocked"


def test_verify_callback_rejects_bad_signature():
    body, _ = _signed({"order_id": "session_1", "status": "success"})

    with pytest.raises(InvalidSignatureException):
        _gateway().verify_callback(body, "forged")
    with pytest.raises(InvalidSignatureException):
        _gateway().verify_callback(body, None)


def test_verify_callback_requires_order_id():
    body, signature = _signed({"status": "success"})

    with pytest.raises(PaymentGatewayException):
        _gateway().verify_callback(body, signature)


def test_refund_and_fetch_status():
    def handler(request):
        params = _form(request)
        if params["action"] == "refund":
            assert params["amount"] == 2050
            return httpx.Response(200, json={"status": "reversed", "payment_id": 99})
        return httpx.Response(200, json={"status": "success", "payment_id": 98})

    gateway = _gateway(handler)
    payment = SimpleNamespace(external_reference="session_1", charged_amount=Decimal("2050"))

    refund = gateway.refund(payment)
    assert refund.refund_id == "99"

    event = gateway.fetch_status("session_1")
    assert event.outcome is GatewayOutcome.SUCCEEDED
    assert event.event_id == "sync:session_1:success"


def test_refund_rejected_status_raises():
    gateway = _gateway(lambda request: httpx.Response(200, json={"status": "error"}))
    payment = SimpleNamespace(external_reference="session_1", charged_amount=Decimal("10"))

    with pytest.raises(PaymentGatewayException):
        gateway.refund(payment)
