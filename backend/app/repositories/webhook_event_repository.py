"""Repository helpers for the webhook event ledger."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.enums import WebhookStatus
from app.core.exceptions import RepositoryException
from app.models.webhook_event import WebhookEvent
from app.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    """Repository for webhook ledger queries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, WebhookEvent)

    def find_by_source_and_event_id(self, source: str, event_id: str) -> WebhookEvent | None:
        return self.find_one_by(source=source, event_id=event_id)

    def insert_if_absent(
        self,
        *,
        source: str,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
    ) -> WebhookEvent | None:
        """
        Insert a ledger row in ``processing`` state unless one already exists.

        The insert runs inside a SAVEPOINT so a unique-constraint loss only
        rolls back this statement. Returns None when another delivery owns
        the (source, event_id) key.
        """
        now = _now_utc()
        try:
            with self.db.begin_nested():
                event = WebhookEvent(
                    source=source,
                    event_id=event_id,
                    event_type=event_type or "unknown",
                    payload=payload,
                    status=WebhookStatus.PROCESSING.value,
                    attempts=1,
                    received_at=now,
                    claimed_at=now,
                )
                self.db.add(event)
                self.db.flush()
            return event
        except IntegrityError:
            self.logger.info(
                "Webhook event already recorded",
                extra={"source": source, "event_id": event_id},
            )
            return None
        except SQLAlchemyError as exc:
            self.logger.error("Failed to record webhook event %s/%s: %s", source, event_id, exc)
            raise RepositoryException(f"Failed to record webhook event: {exc}") from exc

    def claim_for_processing(self, event_pk: str, *, stale_before: datetime) -> bool:
        """
        Atomically move a failed (or stale in-flight) event back to ``processing``.

        Returns True only for the single caller whose UPDATE matched the row.
        """
        stmt = (
            update(WebhookEvent)
            .where(
                WebhookEvent.id == event_pk,
                or_(
                    WebhookEvent.status == WebhookStatus.FAILED.value,
                    and_(
                        WebhookEvent.status == WebhookStatus.PROCESSING.value,
                        WebhookEvent.claimed_at < stale_before,
                    ),
                ),
            )
            .values(
                status=WebhookStatus.PROCESSING.value,
                claimed_at=_now_utc(),
                attempts=WebhookEvent.attempts + 1,
                processing_error=None,
                processed_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to claim webhook event %s: %s", event_pk, exc)
            raise RepositoryException(f"Failed to claim webhook event: {exc}") from exc
        return bool(result.rowcount == 1)

    def list_recent(
        self,
        *,
        source: str | None = None,
        status: str | None = None,
        limit: int = 50,
    ) -> list[WebhookEvent]:
        query = self._build_query()
        if source:
            query = query.filter(WebhookEvent.source == source)
        if status:
            query = query.filter(WebhookEvent.status == status)
        return self._execute_query(query.order_by(WebhookEvent.received_at.desc()).limit(limit))
