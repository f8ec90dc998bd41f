"""Repository for session bookings."""

import logging
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..models.session_booking import SessionBooking
from ..models.training_session import TrainingSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SessionBookingRepository(BaseRepository[SessionBooking]):
    """Data access for bookings; one row per session at most."""

    def __init__(self, db: Session):
        super().__init__(db, SessionBooking)

    def get_with_session(self, booking_id: str) -> Optional[SessionBooking]:
        query = (
            self._build_query()
            .options(joinedload(SessionBooking.session))
            .filter(SessionBooking.id == booking_id)
        )
        return self._first(query)

    def get_by_session_id(self, session_id: str) -> Optional[SessionBooking]:
        return self.find_one_by(session_id=session_id)

    def count_by_status_for_trainer(self, trainer_id: str) -> Dict[str, int]:
        query = (
            self.db.query(SessionBooking.status, func.count(SessionBooking.id))
            .join(TrainingSession, TrainingSession.id == SessionBooking.session_id)
            .filter(TrainingSession.trainer_id == trainer_id)
            .group_by(SessionBooking.status)
        )
        return {status: count for status, count in self._execute_query(query)}

    def count_by_status_for_client(self, client_id: str) -> Dict[str, int]:
        query = (
            self.db.query(SessionBooking.status, func.count(SessionBooking.id))
            .filter(SessionBooking.client_id == client_id)
            .group_by(SessionBooking.status)
        )
        return {status: count for status, count in self._execute_query(query)}
