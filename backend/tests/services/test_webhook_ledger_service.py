from datetime import datetime, timedelta, timezone

import pytest

from app.core.enums import WebhookStatus
from app.core.exceptions import PaymentGatewayException
from app.models.webhook_event import WebhookEvent
from app.services.webhook_ledger_service import HandlerResult, WebhookLedgerService


def _process(ledger, handler, event_id="evt_1", source="stripe"):
    return ledger.process(
        source=source,
        provider=source,
        event_id=event_id,
        event_type="payment_intent.succeeded",
        payload={"id": event_id},
        handler=handler,
    )


def test_first_delivery_runs_handler(db, ledger):
    calls = []

    def handler():
        calls.append(1)
        return HandlerResult(
            status=WebhookStatus.PROCESSED,
            related_entity_type="payment",
            related_entity_id="pay_1",
            context="done",
        )

    processed = _process(ledger, handler)

    assert calls == [1]
    assert not processed.duplicate
    assert processed.result.context == "done"
    row = db.query(WebhookEvent).filter_by(source="stripe", event_id="evt_1").one()
    assert row.status == WebhookStatus.PROCESSED.value
    assert row.related_entity_id == "pay_1"
    assert row.attempts == 1
    assert row.processed_at is not None


def test_settled_event_is_not_run_again(db, ledger):
    calls = []

    def handler():
        calls.append(1)
        return HandlerResult(status=WebhookStatus.IGNORED)

    _process(ledger, handler)
    again = _process(ledger, handler)

    assert calls == [1]
    assert again.duplicate
    assert again.claim.previous_status == WebhookStatus.IGNORED.value


def test_same_event_id_from_another_source_is_separate(db, ledger):
    ok = lambda: HandlerResult(status=WebhookStatus.PROCESSED)  # noqa: E731

    _process(ledger, ok, source="stripe")
    other = _process(ledger, ok, source="liqpay")

    assert not other.duplicate
    assert db.query(WebhookEvent).filter_by(event_id="evt_1").count() == 2


def test_failed_event_is_reclaimed_on_redelivery(db, ledger):
    def broken():
        raise RuntimeError("boom")

    with pytest.raises(PaymentGatewayException) as exc_info:
        _process(ledger, broken)
    assert "boom" in exc_info.value.message
    assert exc_info.value.details["event_id"] == "evt_1"

    row = db.query(WebhookEvent).filter_by(event_id="evt_1").one()
    assert row.status == WebhookStatus.FAILED.value
    assert row.processing_error == "boom"

    processed = _process(ledger, lambda: HandlerResult(status=WebhookStatus.PROCESSED))

    assert not processed.duplicate
    db.refresh(row)
    assert row.status == WebhookStatus.PROCESSED.value
    assert row.attempts == 2
    assert row.processing_error is None


def test_in_flight_event_is_not_claimed_until_stale(db):
    ledger = WebhookLedgerService(db, stale_after_seconds=300)
    row = WebhookEvent(
        source="stripe",
        event_id="evt_busy",
        event_type="payment_intent.succeeded",
        payload={},
        status=WebhookStatus.PROCESSING.value,
        attempts=1,
        received_at=datetime.now(timezone.utc),
        claimed_at=datetime.now(timezone.utc),
    )
    db.add(row)
    db.commit()
    ok = lambda: HandlerResult(status=WebhookStatus.PROCESSED)  # noqa: E731

    assert _process(ledger, ok, event_id="evt_busy").duplicate

    row.claimed_at = datetime.now(timezone.utc) - timedelta(minutes=10)
    db.commit()
    processed = _process(ledger, ok, event_id="evt_busy")

    assert not processed.duplicate
    db.refresh(row)
    assert row.attempts == 2


def test_event_without_id_is_rejected(ledger):
    with pytest.raises(PaymentGatewayException):
        _process(ledger, lambda: HandlerResult(status=WebhookStatus.PROCESSED), event_id="")


def test_list_events_filters(db, ledger):
    ok = lambda: HandlerResult(status=WebhookStatus.PROCESSED)  # noqa: E731
    _process(ledger, ok, event_id="evt_a")
    _process(ledger, ok, event_id="evt_b", source="liqpay")

    assert [e.event_id for e in ledger.list_events(source="liqpay")] == ["evt_b"]
    assert len(ledger.list_events(status=WebhookStatus.PROCESSED.value)) == 2
