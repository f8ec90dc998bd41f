"""Service for claiming and settling gateway webhook events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import time
from typing import Any, Callable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.enums import WebhookStatus
from app.core.exceptions import PaymentGatewayException
from app.models.webhook_event import WebhookEvent
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.repositories.webhook_event_repository import WebhookEventRepository
from app.services.base import BaseService


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WebhookClaim:
    """Outcome of trying to take ownership of an inbound event."""

    event: WebhookEvent | None
    claimed: bool

    @property
    def previous_status(self) -> str | None:
        return self.event.status if self.event is not None and not self.claimed else None


@dataclass
class HandlerResult:
    """What an event handler did; ``context`` is passed back to the caller untouched."""

    status: WebhookStatus
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    context: Any = None


@dataclass
class ProcessedEvent:
    claim: WebhookClaim
    result: HandlerResult | None

    @property
    def duplicate(self) -> bool:
        return not self.claim.claimed


class WebhookLedgerService(BaseService):
    """Business logic for webhook ledger entries."""

    def __init__(
        self,
        db: Session,
        repository: WebhookEventRepository | None = None,
        stale_after_seconds: int | None = None,
    ) -> None:
        super().__init__(db)
        self.repository = repository or WebhookEventRepository(db)
        self.stale_after_seconds = (
            settings.webhook_processing_stale_seconds
            if stale_after_seconds is None
            else stale_after_seconds
        )

    @BaseService.measure_operation("webhook_ledger.claim")
    def claim(
        self,
        *,
        source: str,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
    ) -> WebhookClaim:
        """
        Take ownership of ``(source, event_id)``.

        The first delivery inserts the ledger row. A later delivery only wins
        when the row is ``failed`` or has been ``processing`` for longer than
        the stale threshold; settled and in-flight events are not claimed.
        The caller commits to make the claim visible to other workers.
        """
        inserted = self.repository.insert_if_absent(
            source=source, event_id=event_id, event_type=event_type, payload=payload
        )
        if inserted is not None:
            return WebhookClaim(event=inserted, claimed=True)

        existing = self.repository.find_by_source_and_event_id(source, event_id)
        if existing is None or existing.is_settled:
            return WebhookClaim(event=existing, claimed=False)

        stale_before = _now_utc() - timedelta(seconds=self.stale_after_seconds)
        if self.repository.claim_for_processing(existing.id, stale_before=stale_before):
            self.db.refresh(existing)
            existing.payload = payload
            self.logger.info(
                "Reclaimed webhook event for redelivery",
                extra={"source": source, "event_id": event_id, "attempts": existing.attempts},
            )
            return WebhookClaim(event=existing, claimed=True)
        return WebhookClaim(event=existing, claimed=False)

    @BaseService.measure_operation("webhook_ledger.process")
    def process(
        self,
        *,
        source: str,
        provider: str,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
        handler: Callable[[], HandlerResult],
    ) -> ProcessedEvent:
        """
        Run ``handler`` at most once per ``(source, event_id)``.

        The claim is committed before the handler runs. Handler changes and
        the ``processed``/``ignored`` mark commit together; on error they roll
        back, the row is committed as ``failed`` and PaymentGatewayException
        tells the gateway to redeliver.
        """
        if not event_id:
            raise PaymentGatewayException("Gateway event is missing an id", provider=provider)
        started = time.monotonic()

        claim = self.claim(source=source, event_id=event_id, event_type=event_type, payload=payload)
        if not claim.claimed:
            prometheus_metrics.record_webhook_event(source, "duplicate")
            self.logger.info(
                "Skipping duplicate webhook event",
                extra={"source": source, "event_id": event_id, "status": claim.previous_status},
            )
            return ProcessedEvent(claim=claim, result=None)
        self.db.commit()
        ledger_row = claim.event
        if ledger_row is None:
            raise PaymentGatewayException("Webhook claim returned no ledger row", provider=provider)

        try:
            with self.transaction():
                result = handler()
                self.mark_processed(
                    ledger_row,
                    status=result.status,
                    related_entity_type=result.related_entity_type,
                    related_entity_id=result.related_entity_id,
                    duration_ms=self.elapsed_ms(started),
                )
        except Exception as exc:
            self.logger.error("Failed to process webhook %s/%s: %s", source, event_id, exc)
            self.mark_failed(ledger_row, error=str(exc), duration_ms=self.elapsed_ms(started))
            self.db.commit()
            prometheus_metrics.record_webhook_event(source, WebhookStatus.FAILED.value)
            raise PaymentGatewayException(
                f"Failed to process {event_type}: {exc}",
                provider=provider,
                details={"event_id": event_id},
            ) from exc

        prometheus_metrics.record_webhook_event(source, result.status.value)
        return ProcessedEvent(claim=claim, result=result)

    def mark_processed(
        self,
        event: WebhookEvent,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
        duration_ms: int | None = None,
        status: WebhookStatus = WebhookStatus.PROCESSED,
    ) -> WebhookEvent:
        """Mark webhook as processed (or ignored)."""
        event.status = status.value
        event.processed_at = _now_utc()
        event.related_entity_type = related_entity_type
        event.related_entity_id = related_entity_id
        event.processing_duration_ms = duration_ms
        event.processing_error = None
        self.repository.flush()
        return event

    def mark_failed(
        self,
        event: WebhookEvent,
        *,
        error: str,
        duration_ms: int | None = None,
    ) -> WebhookEvent:
        """Mark webhook as failed so a redelivery can reclaim it."""
        event.status = WebhookStatus.FAILED.value
        event.processing_error = error[:2000]
        event.processed_at = _now_utc()
        event.processing_duration_ms = duration_ms
        self.repository.flush()
        return event

    def list_events(
        self, *, source: str | None = None, status: str | None = None, limit: int = 50
    ) -> list[WebhookEvent]:
        return self.repository.list_recent(source=source, status=status, limit=limit)

    @staticmethod
    def elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
