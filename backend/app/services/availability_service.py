# backend/app/services/availability_service.py
"""
Availability Service for the trainer booking platform.

Manages trainer availability windows and derives bookable time:

- Weekly recurring windows keyed by day of week (Sunday = 0)
- Date-specific windows that open or block time on one date
- Slot discovery: open windows minus blocked windows minus sessions

All times are zero-padded ``HH:MM`` strings; interval math happens in
minutes since midnight with half-open ranges.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import RoleName
from ..core.exceptions import (
    AvailabilityOverlapException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..models.trainer_availability import TrainerAvailability
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..repositories.trainer_availability_repository import TrainerAvailabilityRepository
from ..repositories.training_session_repository import TrainingSessionRepository
from ..repositories.user_repository import UserRepository
from ..schemas.availability import (
    AvailabilityCreate,
    AvailabilityResponse,
    AvailabilityUpdate,
    AvailabilityWindow,
    AvailableSlotsResponse,
    ConflictingSession,
    TimeRange,
    TrainerSearchResponse,
    TrainerSearchResult,
    TrainerSummary,
)
from ..utils.time_utils import (
    Interval,
    day_of_week,
    is_valid_time_str,
    minutes_to_time_str,
    normalize_time_str,
    ranges_overlap,
    subtract_intervals,
    time_str_to_minutes,
)
from .access import require_role
from .base import BaseService

logger = logging.getLogger(__name__)


def validate_time_window(start_time: str, end_time: str) -> Tuple[str, str]:
    """
    Validate an HH:MM window and return it zero-padded.

    Raises:
        ValidationException: On malformed times or when end is not after start.
    """
    for value in (start_time, end_time):
        if not is_valid_time_str(value):
            raise ValidationException(
                "Invalid time format. Use HH:MM format",
                code="INVALID_TIME_FORMAT",
                details={"value": value},
            )
    if time_str_to_minutes(end_time) <= time_str_to_minutes(start_time):
        raise ValidationException(
            "End time must be after start time",
            code="INVALID_TIME_RANGE",
            details={"start_time": start_time, "end_time": end_time},
        )
    return normalize_time_str(start_time), normalize_time_str(end_time)


def _to_interval(start_time: str, end_time: str) -> Interval:
    return time_str_to_minutes(start_time), time_str_to_minutes(end_time)


def _to_time_range(interval: Interval) -> TimeRange:
    return TimeRange(
        start_time=minutes_to_time_str(interval[0]), end_time=minutes_to_time_str(interval[1])
    )


class AvailabilityService(BaseService):
    """Service layer for trainer availability and slot discovery."""

    def __init__(
        self,
        db: Session,
        repository: Optional[TrainerAvailabilityRepository] = None,
        session_repository: Optional[TrainingSessionRepository] = None,
        user_repository: Optional[UserRepository] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_availability_repository(db)
        self.session_repository = (
            session_repository or RepositoryFactory.create_training_session_repository(db)
        )
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)

    # ------------------------------------------------------------------
    # Window management
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_key(
        day: Optional[int], specific_date: Optional[date], is_recurring: bool
    ) -> Tuple[int, Optional[date], bool]:
        """Return (day_of_week, specific_date, is_recurring) for storage."""
        if specific_date is not None:
            derived = day_of_week(specific_date)
            if day is not None and day != derived:
                raise ValidationException(
                    "day_of_week does not match specific_date",
                    details={"day_of_week": day, "expected": derived},
                )
            return derived, specific_date, False
        if day is None:
            raise ValidationException("Either day_of_week or specific_date is required")
        if not is_recurring:
            raise ValidationException("Non-recurring availability requires a specific_date")
        return day, None, True

    def _check_overlap(
        self,
        trainer_id: str,
        *,
        day: int,
        specific_date: Optional[date],
        start_time: str,
        end_time: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        new_start, new_end = _to_interval(start_time, end_time)
        for existing in self.repository.list_same_key(
            trainer_id, day_of_week=day, specific_date=specific_date, exclude_id=exclude_id
        ):
            if existing.start_time == start_time:
                raise ConflictException(
                    "Availability slot already exists for this time",
                    code="AVAILABILITY_DUPLICATE",
                    details={"availability_id": existing.id},
                )
            ex_start, ex_end = _to_interval(existing.start_time, existing.end_time)
            if ranges_overlap(new_start, new_end, ex_start, ex_end):
                raise AvailabilityOverlapException(
                    existing.slot_key,
                    f"{start_time}-{end_time}",
                    f"{existing.start_time}-{existing.end_time}",
                )

    def _get_owned(self, trainer: User, availability_id: str, action: str) -> TrainerAvailability:
        availability = self.repository.get_by_id(availability_id)
        if not availability:
            raise NotFoundException("Availability not found")
        if availability.trainer_id != trainer.id:
            raise ForbiddenException(f"You can only {action} your own availability")
        return availability

    @BaseService.measure_operation("create_availability")
    def create_availability(self, trainer: User, data: AvailabilityCreate) -> TrainerAvailability:
        """
        Declare a new availability window for ``trainer``.

        Raises:
            ForbiddenException: Caller is not a trainer
            ValidationException: Malformed times or inconsistent day/date
            ConflictException: Same start on the same day/date already exists
            AvailabilityOverlapException: Window overlaps another on the same day/date
        """
        require_role(trainer, RoleName.TRAINER, action="manage availability")
        start_time, end_time = validate_time_window(data.start_time, data.end_time)
        day, specific_date, is_recurring = self._resolve_key(
            data.day_of_week, data.specific_date, data.is_recurring
        )

        with self.transaction():
            self._check_overlap(
                trainer.id,
                day=day,
                specific_date=specific_date,
                start_time=start_time,
                end_time=end_time,
            )
            availability = self.repository.create(
                trainer_id=trainer.id,
                day_of_week=day,
                specific_date=specific_date,
                start_time=start_time,
                end_time=end_time,
                is_recurring=is_recurring,
                is_available=data.is_available,
            )

        self.log_operation(
            "create_availability", trainer_id=trainer.id, availability_id=availability.id
        )
        return availability

    @BaseService.measure_operation("list_availability")
    def list_availability(
        self, trainer_id: str, on_date: Optional[date] = None
    ) -> List[TrainerAvailability]:
        """All windows of a trainer, or only those that apply to ``on_date``."""
        if on_date is None:
            return self.repository.list_for_trainer(trainer_id)
        return self.repository.list_for_date(trainer_id, on_date, day_of_week(on_date))

    @BaseService.measure_operation("update_availability")
    def update_availability(
        self, trainer: User, availability_id: str, data: AvailabilityUpdate
    ) -> TrainerAvailability:
        availability = self._get_owned(trainer, availability_id, "update")
        updates: Dict[str, Any] = data.model_dump(exclude_unset=True)

        specific_date = updates.get("specific_date", availability.specific_date)
        day = updates.get(
            "day_of_week", availability.day_of_week if specific_date is None else None
        )
        is_recurring = updates.get("is_recurring")
        if is_recurring is None:
            is_recurring = specific_date is None
        day, specific_date, is_recurring = self._resolve_key(day, specific_date, is_recurring)
        start_time, end_time = validate_time_window(
            updates.get("start_time") or availability.start_time,
            updates.get("end_time") or availability.end_time,
        )

        with self.transaction():
            self._check_overlap(
                trainer.id,
                day=day,
                specific_date=specific_date,
                start_time=start_time,
                end_time=end_time,
                exclude_id=availability.id,
            )
            availability.day_of_week = day
            availability.specific_date = specific_date
            availability.is_recurring = is_recurring
            availability.start_time = start_time
            availability.end_time = end_time
            if updates.get("is_available") is not None:
                availability.is_available = updates["is_available"]
            self.repository.flush()

        return availability

    @BaseService.measure_operation("delete_availability")
    def delete_availability(self, trainer: User, availability_id: str) -> None:
        availability = self._get_owned(trainer, availability_id, "delete")
        with self.transaction():
            self.repository.delete(availability.id)
        self.log_operation("delete_availability", trainer_id=trainer.id, availability_id=availability_id)

    # ------------------------------------------------------------------
    # Slot discovery
    # ------------------------------------------------------------------

    def _open_ranges(self, trainer_id: str, on_date: date) -> Tuple[
        List[TrainerAvailability], List[Interval], List[Interval]
    ]:
        windows = self.list_availability(trainer_id, on_date)
        open_windows = [w for w in windows if w.is_available]
        blocked = [_to_interval(w.start_time, w.end_time) for w in windows if not w.is_available]
        free = subtract_intervals(
            [_to_interval(w.start_time, w.end_time) for w in open_windows], blocked
        )
        return open_windows, blocked, free

    def is_within_availability(
        self, trainer_id: str, on_date: date, start_time: str, end_time: str
    ) -> bool:
        """True when [start, end) lies entirely inside open, unblocked time on ``on_date``."""
        _, _, free = self._open_ranges(trainer_id, on_date)
        return not subtract_intervals([_to_interval(start_time, end_time)], free)

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(self, trainer_id: str, on_date: date) -> AvailableSlotsResponse:
        """
        Free time for a trainer on one date.

        Open windows minus blocked windows minus every non-cancelled session
        of the trainer on that date. Each window also reports the sessions
        that overlap it.
        """
        trainer = self.user_repository.get_active_with_role(trainer_id, RoleName.TRAINER)
        if not trainer:
            raise NotFoundException("Trainer not found")

        open_windows, blocked, _ = self._open_ranges(trainer_id, on_date)
        sessions = self.session_repository.list_active_for_trainer_on_date(trainer_id, on_date)
        session_ranges = [(s, _to_interval(s.start_time, s.end_time)) for s in sessions]
        taken = blocked + [interval for _, interval in session_ranges]

        windows: List[AvailabilityWindow] = []
        for window in open_windows:
            w_start, w_end = _to_interval(window.start_time, window.end_time)
            conflicts = [
                ConflictingSession(
                    id=s.id,
                    title=s.title,
                    start_time=s.start_time,
                    end_time=s.end_time,
                    status=s.status,
                )
                for s, (s_start, s_end) in session_ranges
                if ranges_overlap(w_start, w_end, s_start, s_end)
            ]
            windows.append(
                AvailabilityWindow(
                    availability_id=window.id,
                    start_time=window.start_time,
                    end_time=window.end_time,
                    is_recurring=window.is_recurring,
                    is_booked=bool(conflicts),
                    conflicting_sessions=conflicts,
                    free_ranges=[
                        _to_time_range(r) for r in subtract_intervals([(w_start, w_end)], taken)
                    ],
                )
            )

        slots = subtract_intervals(
            [_to_interval(w.start_time, w.end_time) for w in open_windows], taken
        )
        return AvailableSlotsResponse(
            trainer_id=trainer_id,
            date=on_date,
            day_of_week=day_of_week(on_date),
            slots=[_to_time_range(r) for r in slots],
            windows=windows,
        )

    @BaseService.measure_operation("search_trainers")
    def search_trainers(
        self, on_date: Optional[date] = None, query: Optional[str] = None, limit: int = 50
    ) -> TrainerSearchResponse:
        """Active trainers, each with the availability that applies to ``on_date``."""
        results = []
        for trainer in self.user_repository.search_trainers(query=query, limit=limit):
            availability = (
                [
                    AvailabilityResponse.model_validate(w)
                    for w in self.list_availability(trainer.id, on_date)
                    if w.is_available
                ]
                if on_date
                else []
            )
            results.append(
                TrainerSearchResult(
                    trainer=TrainerSummary(
                        id=trainer.id,
                        full_name=trainer.full_name,
                        email=trainer.email,
                        subscription_plan=trainer.subscription_plan,
                    ),
                    availability=availability,
                )
            )
        return TrainerSearchResponse(date=on_date, trainers=results)
