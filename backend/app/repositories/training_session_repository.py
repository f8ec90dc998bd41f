"""Repository for training sessions."""

from datetime import date
import logging
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ..core.enums import SessionStatus
from ..models.session_booking import SessionBooking
from ..models.training_session import TrainingSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TrainingSessionRepository(BaseRepository[TrainingSession]):
    """Data access for training sessions and their overlap checks."""

    def __init__(self, db: Session):
        super().__init__(db, TrainingSession)

    def get_with_booking(self, session_id: str) -> Optional[TrainingSession]:
        query = (
            self._build_query()
            .options(joinedload(TrainingSession.booking))
            .filter(TrainingSession.id == session_id)
        )
        return self._first(query)

    def list_active_for_trainer_on_date(
        self,
        trainer_id: str,
        session_date: date,
        exclude_id: Optional[str] = None,
    ) -> List[TrainingSession]:
        """Non-cancelled sessions of a trainer on one date, ordered by start time."""
        query = self._build_query().filter(
            TrainingSession.trainer_id == trainer_id,
            TrainingSession.session_date == session_date,
            TrainingSession.status != SessionStatus.CANCELLED.value,
        )
        if exclude_id:
            query = query.filter(TrainingSession.id != exclude_id)
        return self._execute_query(query.order_by(TrainingSession.start_time.asc()))

    def list_for_user(
        self,
        user_id: str,
        *,
        as_trainer: bool,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[TrainingSession]:
        """
        Sessions visible to a user.

        Trainers see the sessions they own; clients see sessions assigned to
        them or carrying their booking.
        """
        query = self._build_query().options(joinedload(TrainingSession.booking))
        if as_trainer:
            query = query.filter(TrainingSession.trainer_id == user_id)
        else:
            query = query.outerjoin(
                SessionBooking, SessionBooking.session_id == TrainingSession.id
            ).filter(
                or_(TrainingSession.client_id == user_id, SessionBooking.client_id == user_id)
            )
        if status:
            query = query.filter(TrainingSession.status == status)
        if date_from:
            query = query.filter(TrainingSession.session_date >= date_from)
        if date_to:
            query = query.filter(TrainingSession.session_date <= date_to)
        query = query.order_by(
            TrainingSession.session_date.asc(), TrainingSession.start_time.asc()
        )
        return self._execute_query(query.offset(offset).limit(limit))

    def count_by_status(self, trainer_id: str) -> Dict[str, int]:
        query = (
            self.db.query(TrainingSession.status, func.count(TrainingSession.id))
            .filter(TrainingSession.trainer_id == trainer_id)
            .group_by(TrainingSession.status)
        )
        return {status: count for status, count in self._execute_query(query)}

    def count_for_trainer(self, trainer_id: str) -> int:
        return self.count(trainer_id=trainer_id)

    def count_distinct_clients_since(self, trainer_id: str, since: date) -> int:
        query = self.db.query(func.count(func.distinct(TrainingSession.client_id))).filter(
            TrainingSession.trainer_id == trainer_id,
            TrainingSession.client_id.isnot(None),
            TrainingSession.session_date >= since,
        )
        return int(self._execute_scalar(query) or 0)

    def count_by_status_for_client(self, client_id: str) -> Dict[str, int]:
        query = (
            self.db.query(TrainingSession.status, func.count(TrainingSession.id))
            .filter(TrainingSession.client_id == client_id)
            .group_by(TrainingSession.status)
        )
        return {status: count for status, count in self._execute_query(query)}
