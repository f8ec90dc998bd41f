# backend/app/services/training_session_service.py
"""
Training Session Service for the trainer booking platform.

Handles the session lifecycle:
- Creation with availability and overlap checks
- Updates, including the SCHEDULED -> terminal status transitions
- Deletion guarded by bookings and payments
- Visibility rules and per-user statistics
"""

from datetime import date
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import BookingStatus, RoleName, SessionStatus
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    SessionConflictException,
    ValidationException,
)
from ..models.training_session import TrainingSession
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from ..repositories.session_booking_repository import SessionBookingRepository
from ..repositories.training_session_repository import TrainingSessionRepository
from ..repositories.user_repository import UserRepository
from ..schemas.training_session import SessionCreate, SessionStatsResponse, SessionUpdate
from ..utils.time_utils import duration_minutes, ranges_overlap, time_str_to_minutes
from .access import require_role
from .availability_service import AvailabilityService, validate_time_window
from .base import BaseService

logger = logging.getLogger(__name__)

MAX_SESSION_PRICE = Decimal("10000")

ALLOWED_STATUS_TRANSITIONS = {
    SessionStatus.SCHEDULED.value: {
        SessionStatus.COMPLETED.value,
        SessionStatus.CANCELLED.value,
        SessionStatus.NO_SHOW.value,
    },
}


def can_view_session(user: User, session: TrainingSession) -> bool:
    """Trainer, assigned client, booking client and admins may read a session."""
    if user.is_admin or session.trainer_id == user.id or session.client_id == user.id:
        return True
    booking = session.booking
    return booking is not None and booking.client_id == user.id


class TrainingSessionService(BaseService):
    """Service layer for training sessions."""

    def __init__(
        self,
        db: Session,
        repository: Optional[TrainingSessionRepository] = None,
        booking_repository: Optional[SessionBookingRepository] = None,
        payment_repository: Optional[PaymentRepository] = None,
        user_repository: Optional[UserRepository] = None,
        availability_service: Optional[AvailabilityService] = None,
        enforce_availability: Optional[bool] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_training_session_repository(db)
        self.booking_repository = booking_repository or RepositoryFactory.create_booking_repository(db)
        self.payment_repository = payment_repository or RepositoryFactory.create_payment_repository(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.availability_service = availability_service or AvailabilityService(db)
        self.enforce_availability = (
            settings.enforce_trainer_availability
            if enforce_availability is None
            else enforce_availability
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_price(price: Optional[Decimal]) -> None:
        if price is not None and not (Decimal("0") <= price <= MAX_SESSION_PRICE):
            raise ValidationException(
                "Price must be between 0 and 10000",
                code="INVALID_PRICE",
                details={"price": str(price)},
            )

    def _check_schedule(
        self,
        trainer_id: str,
        session_date: date,
        start_time: str,
        end_time: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Availability and overlap checks for a proposed session window."""
        if self.enforce_availability and not self.availability_service.is_within_availability(
            trainer_id, session_date, start_time, end_time
        ):
            raise ValidationException(
                "Trainer is not available at this time",
                code="TRAINER_UNAVAILABLE",
                details={
                    "date": session_date.isoformat(),
                    "start_time": start_time,
                    "end_time": end_time,
                },
            )

        new_start = time_str_to_minutes(start_time)
        new_end = time_str_to_minutes(end_time)
        for existing in self.repository.list_active_for_trainer_on_date(
            trainer_id, session_date, exclude_id=exclude_id
        ):
            if ranges_overlap(
                new_start,
                new_end,
                time_str_to_minutes(existing.start_time),
                time_str_to_minutes(existing.end_time),
            ):
                raise SessionConflictException(
                    session_date.isoformat(), f"{start_time}-{end_time}", existing.id
                )

    def _require_client(self, client_id: str) -> User:
        client = self.user_repository.get_active_with_role(client_id, RoleName.CLIENT)
        if not client:
            raise ValidationException(
                "Client not found or not a client", code="INVALID_CLIENT", details={"client_id": client_id}
            )
        return client

    def _get_owned(self, trainer: User, session_id: str, action: str) -> TrainingSession:
        session = self.repository.get_with_booking(session_id)
        if not session:
            raise NotFoundException("Session not found")
        if session.trainer_id != trainer.id:
            raise ForbiddenException(f"You can only {action} your own sessions")
        return session

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_session")
    def create_session(self, trainer: User, data: SessionCreate) -> TrainingSession:
        """
        Schedule a new session for ``trainer``.

        Raises:
            ForbiddenException: Caller is not a trainer
            ValidationException: Bad times, price, client or unavailable trainer
            SessionConflictException: Overlaps another non-cancelled session
        """
        require_role(trainer, RoleName.TRAINER, action="create sessions")
        start_time, end_time = validate_time_window(data.start_time, data.end_time)
        self._validate_price(data.price)
        if data.client_id:
            self._require_client(data.client_id)

        with self.transaction():
            self._check_schedule(trainer.id, data.session_date, start_time, end_time)
            session = self.repository.create(
                trainer_id=trainer.id,
                client_id=data.client_id,
                title=data.title,
                description=data.description,
                session_date=data.session_date,
                start_time=start_time,
                end_time=end_time,
                duration=duration_minutes(start_time, end_time),
                session_type=data.session_type.value,
                status=SessionStatus.SCHEDULED.value,
                location=data.location,
                notes=data.notes,
                price=data.price,
                currency=(data.currency or settings.default_currency).upper(),
                workout_plan_id=data.workout_plan_id,
            )

        self.log_operation("create_session", session_id=session.id, trainer_id=trainer.id)
        return session

    @BaseService.measure_operation("update_session")
    def update_session(
        self, trainer: User, session_id: str, data: SessionUpdate
    ) -> TrainingSession:
        session = self._get_owned(trainer, session_id, "update")
        updates: Dict[str, Any] = data.model_dump(exclude_unset=True)

        new_status = updates.pop("status", None)
        if new_status is not None:
            new_status = SessionStatus(new_status).value
            if new_status != session.status:
                allowed = ALLOWED_STATUS_TRANSITIONS.get(session.status, set())
                if new_status not in allowed:
                    raise ValidationException(
                        f"Cannot change session status from {session.status} to {new_status}",
                        code="INVALID_STATUS_TRANSITION",
                        details={"from": session.status, "to": new_status},
                    )
        elif session.is_terminal and updates:
            raise ValidationException(
                f"Cannot modify a {session.status.lower()} session",
                code="SESSION_NOT_EDITABLE",
            )

        if "price" in updates:
            self._validate_price(updates["price"])

        schedule_changed = any(k in updates for k in ("session_date", "start_time", "end_time"))
        start_time, end_time = validate_time_window(
            updates.get("start_time") or session.start_time,
            updates.get("end_time") or session.end_time,
        )
        session_date = updates.get("session_date") or session.session_date

        with self.transaction():
            if schedule_changed:
                self._check_schedule(
                    trainer.id, session_date, start_time, end_time, exclude_id=session.id
                )
                session.session_date = session_date
                session.start_time = start_time
                session.end_time = end_time
                session.duration = duration_minutes(start_time, end_time)

            for field in ("title", "description", "location", "notes", "price", "workout_plan_id"):
                if field in updates:
                    setattr(session, field, updates[field])
            if updates.get("session_type") is not None:
                session.session_type = updates["session_type"].value
            if updates.get("currency"):
                session.currency = updates["currency"].upper()
            if new_status is not None:
                session.status = new_status
            self.repository.flush()

        self.log_operation("update_session", session_id=session.id, status=session.status)
        return session

    @BaseService.measure_operation("delete_session")
    def delete_session(self, trainer: User, session_id: str) -> None:
        """
        Delete a session the trainer owns.

        Raises:
            ValidationException: An active booking exists
            ConflictException: Payment records reference the session
        """
        session = self._get_owned(trainer, session_id, "delete")
        booking = session.booking
        if booking is not None and booking.status != BookingStatus.CANCELLED.value:
            raise ValidationException(
                "Cannot delete a session with an active booking",
                code="SESSION_HAS_BOOKING",
                details={"booking_id": booking.id},
            )
        if self.payment_repository.has_payments_for_session(session.id):
            raise ConflictException(
                "Cannot delete a session with payment records",
                code="SESSION_HAS_PAYMENTS",
            )

        with self.transaction():
            self.repository.delete(session.id)
        self.log_operation("delete_session", session_id=session_id, trainer_id=trainer.id)

    @BaseService.measure_operation("get_session")
    def get_session(self, user: User, session_id: str) -> TrainingSession:
        session = self.repository.get_with_booking(session_id)
        if not session:
            raise NotFoundException("Session not found")
        if not can_view_session(user, session):
            raise ForbiddenException("You do not have access to this session")
        return session

    @BaseService.measure_operation("list_sessions")
    def list_sessions(
        self,
        user: User,
        *,
        status: Optional[SessionStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[TrainingSession]:
        return self.repository.list_for_user(
            user.id,
            as_trainer=user.is_trainer,
            status=status.value if status else None,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )

    @BaseService.measure_operation("get_session_stats")
    def get_session_stats(self, user: User) -> SessionStatsResponse:
        if user.is_trainer:
            sessions = self.repository.count_by_status(user.id)
            bookings = self.booking_repository.count_by_status_for_trainer(user.id)
        else:
            sessions = self.repository.count_by_status_for_client(user.id)
            bookings = self.booking_repository.count_by_status_for_client(user.id)

        return SessionStatsResponse(
            total=sum(sessions.values()),
            completed=sessions.get(SessionStatus.COMPLETED.value, 0),
            cancelled=sessions.get(SessionStatus.CANCELLED.value, 0),
            scheduled=sessions.get(SessionStatus.SCHEDULED.value, 0),
            no_show=sessions.get(SessionStatus.NO_SHOW.value, 0),
            pending_bookings=bookings.get(BookingStatus.PENDING.value, 0),
            confirmed_bookings=bookings.get(BookingStatus.CONFIRMED.value, 0),
        )
