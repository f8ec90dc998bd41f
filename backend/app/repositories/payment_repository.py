# backend/app/repositories/payment_repository.py
"""
Payment Repository for the trainer booking platform.

Lookups by gateway correlation id, per-session payment state, history
pages and the aggregates behind payment statistics.
"""

from decimal import Decimal
import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.enums import PaymentStatus
from ..models.payment import Payment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """Data access for session and subscription payments."""

    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_by_external_reference(self, provider: str, reference: str) -> Optional[Payment]:
        return self.find_one_by(provider=provider, external_reference=reference)

    def get_by_transaction_id(self, provider: str, transaction_id: str) -> Optional[Payment]:
        return self.find_one_by(provider=provider, gateway_transaction_id=transaction_id)

    def get_latest_for_session(
        self,
        session_id: str,
        status: Optional[PaymentStatus] = None,
        *,
        exclude_id: Optional[str] = None,
    ) -> Optional[Payment]:
        query = self._build_query().filter(Payment.session_id == session_id)
        if status is not None:
            query = query.filter(Payment.status == status.value)
        if exclude_id is not None:
            query = query.filter(Payment.id != exclude_id)
        return self._first(query.order_by(Payment.created_at.desc(), Payment.id.desc()))

    def has_payments_for_session(self, session_id: str) -> bool:
        return self.exists(session_id=session_id)

    def list_for_user(
        self, user_id: str, *, as_trainer: bool, limit: int = 50, offset: int = 0
    ) -> List[Payment]:
        column = Payment.trainer_id if as_trainer else Payment.client_id
        query = (
            self._build_query()
            .filter(column == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return self._execute_query(query)

    def count_by_status(self, user_id: str, *, as_trainer: bool) -> Dict[str, int]:
        column = Payment.trainer_id if as_trainer else Payment.client_id
        query = (
            self.db.query(Payment.status, func.count(Payment.id))
            .filter(column == user_id)
            .group_by(Payment.status)
        )
        return {status: count for status, count in self._execute_query(query)}

    def sum_completed_by_currency(
        self, user_id: str, *, as_trainer: bool
    ) -> Dict[str, Dict[str, Decimal]]:
        """Amount and platform fee totals over COMPLETED payments, keyed by list currency."""
        column = Payment.trainer_id if as_trainer else Payment.client_id
        query = (
            self.db.query(
                Payment.currency,
                func.coalesce(func.sum(Payment.amount), 0),
                func.coalesce(func.sum(Payment.platform_fee), 0),
            )
            .filter(column == user_id, Payment.status == PaymentStatus.COMPLETED.value)
            .group_by(Payment.currency)
        )
        return {
            currency: {"revenue": Decimal(str(revenue)), "platform_fees": Decimal(str(fees))}
            for currency, revenue, fees in self._execute_query(query)
        }
