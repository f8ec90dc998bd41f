"""Repository for trainer availability windows."""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..models.trainer_availability import TrainerAvailability
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TrainerAvailabilityRepository(BaseRepository[TrainerAvailability]):
    """Data access for recurring and date-specific availability windows."""

    def __init__(self, db: Session):
        super().__init__(db, TrainerAvailability)

    def list_for_trainer(self, trainer_id: str) -> List[TrainerAvailability]:
        query = (
            self._build_query()
            .filter(TrainerAvailability.trainer_id == trainer_id)
            .order_by(TrainerAvailability.day_of_week.asc(), TrainerAvailability.start_time.asc())
        )
        return self._execute_query(query)

    def list_for_date(self, trainer_id: str, on_date: date, weekday: int) -> List[TrainerAvailability]:
        """
        Windows that apply to ``on_date``.

        Recurring windows for the weekday plus windows pinned to the date,
        ordered by day then start time.
        """
        query = (
            self._build_query()
            .filter(
                TrainerAvailability.trainer_id == trainer_id,
                or_(
                    and_(
                        TrainerAvailability.day_of_week == weekday,
                        TrainerAvailability.is_recurring.is_(True),
                        TrainerAvailability.specific_date.is_(None),
                    ),
                    TrainerAvailability.specific_date == on_date,
                ),
            )
            .order_by(TrainerAvailability.day_of_week.asc(), TrainerAvailability.start_time.asc())
        )
        return self._execute_query(query)

    def list_same_key(
        self,
        trainer_id: str,
        *,
        day_of_week: int,
        specific_date: Optional[date],
        exclude_id: Optional[str] = None,
    ) -> List[TrainerAvailability]:
        """Windows sharing the same key (weekday for recurring rows, date otherwise)."""
        query = self._build_query().filter(TrainerAvailability.trainer_id == trainer_id)
        if specific_date is not None:
            query = query.filter(TrainerAvailability.specific_date == specific_date)
        else:
            query = query.filter(
                TrainerAvailability.specific_date.is_(None),
                TrainerAvailability.day_of_week == day_of_week,
            )
        if exclude_id:
            query = query.filter(TrainerAvailability.id != exclude_id)
        return self._execute_query(query.order_by(TrainerAvailability.start_time.asc()))
