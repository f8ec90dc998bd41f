import json

from app.core.enums import PaymentStatus
from app.integrations.fake_gateway import FAKE_SIGNATURE
from app.integrations.payment_gateway import GatewayOutcome
from app.models.payment import Payment
from tests.factories.builders import create_payment, create_session


def _webhook_body(event_id, outcome, reference):
    return json.dumps(
        {
            "id": event_id,
            "type": f"payment.{outcome}",
            "outcome": outcome,
            "external_reference": reference,
        }
    )


def _start_payment(client, session_id, headers, provider="STRIPE"):
    response = client.post(
        "/payments/session/create",
        json={"session_id": session_id, "provider": provider},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_create_session_payment(client, db, trainer_user, auth_headers_client):
    session = create_session(db, trainer_user)

    body = _start_payment(client, session.id, auth_headers_client)

    assert body["status"] == PaymentStatus.PENDING.value
    assert body["charged_amount"] == 50.0
    assert body["platform_fee"] == 5.0
    assert body["client_payload"]["fake"] is True


def test_create_liqpay_payment_in_uah(client, db, trainer_user, auth_headers_client):
    session = create_session(db, trainer_user)

    body = _start_payment(client, session.id, auth_headers_client, provider="LIQPAY")

    assert body["charged_currency"] == "UAH"
    assert body["charged_amount"] == 2050.0
    assert body["exchange_rate"] == 41.0


def test_trainers_cannot_pay(client, db, trainer_user, auth_headers_trainer):
    session = create_session(db, trainer_user)

    response = client.post(
        "/payments/session/create", json={"session_id": session.id}, headers=auth_headers_trainer
    )

    assert response.status_code == 403


def test_unknown_provider_is_422(client, db, trainer_user, auth_headers_client):
    session = create_session(db, trainer_user)

    response = client.post(
        "/payments/session/create",
        json={"session_id": session.id, "provider": "paypal"},
        headers=auth_headers_client,
    )

    assert response.status_code == 422


def test_stripe_webhook_flow(client, db, trainer_user, auth_headers_client):
    session = create_session(db, trainer_user)
    payment = _start_payment(client, session.id, auth_headers_client)
    body = _webhook_body("evt_route_1", "succeeded", payment["external_reference"])

    first = client.post(
        "/payments/webhooks/stripe", content=body, headers={"stripe-signature": FAKE_SIGNATURE}
    )
    second = client.post(
        "/payments/webhooks/stripe", content=body, headers={"stripe-signature": FAKE_SIGNATURE}
    )

    assert first.status_code == 200
    assert first.json()["payment_status"] == PaymentStatus.COMPLETED.value
    assert first.json()["booking_status"] == "CONFIRMED"
    assert second.json()["status"] == "duplicate"
    assert db.get(Payment, payment["payment_id"]).status == PaymentStatus.COMPLETED.value


def test_stripe_webhook_requires_signature(client):
    body = _webhook_body("e", "succeeded", "x")

    response = client.post("/payments/webhooks/stripe", content=body)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing stripe-signature header"


def test_stripe_webhook_bad_signature(client):
    response = client.post(
        "/payments/webhooks/stripe",
        content=_webhook_body("e", "succeeded", "x"),
        headers={"stripe-signature": "t=1,v1=forged"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"


def test_liqpay_form_callback(client, db, trainer_user, auth_headers_client):
    session = create_session(db, trainer_user)
    payment = _start_payment(client, session.id, auth_headers_client, provider="LIQPAY")

    response = client.post(
        "/payments/liqpay/callback",
        data={
            "data": _webhook_body("lp_1", "succeeded", payment["external_reference"]),
            "signature": FAKE_SIGNATURE,
        },
    )

    assert response.status_code == 200
    assert response.json()["payment_status"] == PaymentStatus.COMPLETED.value


def test_liqpay_json_callback_and_missing_data(client):
    ignored = client.post(
        "/payments/liqpay/callback",
        json={"data": _webhook_body("lp_2", "succeeded", "session_x"), "signature": FAKE_SIGNATURE},
    )
    missing = client.post("/payments/liqpay/callback", data={"signature": FAKE_SIGNATURE})

    assert ignored.json()["status"] == "ignored"
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing LiqPay data field"


def test_refund_route(client, db, trainer_user, client_user, auth_headers_trainer, stripe_gateway):
    session = create_session(db, trainer_user)
    create_payment(db, session, client_user, status=PaymentStatus.COMPLETED)

    response = client.post(
        "/payments/session/refund",
        json={"session_id": session.id, "reason": "Trainer ill"},
        headers=auth_headers_trainer,
    )

    assert response.status_code == 200
    assert response.json()["status"] == PaymentStatus.REFUNDED.value
    assert stripe_gateway.refunds == ["pi_test_1"]


def test_refund_without_payment_is_404(client, db, trainer_user, auth_headers_trainer):
    session = create_session(db, trainer_user)

    response = client.post(
        "/payments/session/refund", json={"session_id": session.id}, headers=auth_headers_trainer
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "No completed payment found for this session"


def test_sync_history_and_stats(
    client, db, trainer_user, client_user, auth_headers_client, auth_headers_trainer, stripe_gateway
):
    session = create_session(db, trainer_user)
    payment = create_payment(db, session, client_user, external_reference="pi_sync")
    stripe_gateway.statuses["pi_sync"] = GatewayOutcome.SUCCEEDED

    synced = client.post(f"/payments/{payment.id}/sync", headers=auth_headers_client)
    assert synced.json()["status"] == PaymentStatus.COMPLETED.value

    history = client.get("/payments/history", headers=auth_headers_client).json()
    assert [item["id"] for item in history["items"]] == [payment.id]
    assert history["limit"] == 50

    stats = client.get("/payments/stats", headers=auth_headers_trainer).json()
    assert stats["completed"] == 1
    assert stats["total_revenue"] == 50.0
    assert stats["by_currency"]["USD"]["platform_fees"] == 5.0