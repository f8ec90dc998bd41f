"""Repository for trainer subscriptions."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.enums import SubscriptionStatus
from ..models.subscription import Subscription
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

OPEN_STATUSES = (SubscriptionStatus.PENDING.value, SubscriptionStatus.ACTIVE.value)


class SubscriptionRepository(BaseRepository[Subscription]):
    def __init__(self, db: Session):
        super().__init__(db, Subscription)

    def get_open_for_user(self, user_id: str) -> Optional[Subscription]:
        """The trainer's pending or active subscription, if any."""
        query = (
            self._build_query()
            .filter(Subscription.user_id == user_id, Subscription.status.in_(OPEN_STATUSES))
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        return self._first(query)

    def get_latest_for_user(self, user_id: str) -> Optional[Subscription]:
        query = (
            self._build_query()
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        return self._first(query)

    def get_by_external_reference(self, reference: str) -> Optional[Subscription]:
        return self.find_one_by(external_reference=reference)
