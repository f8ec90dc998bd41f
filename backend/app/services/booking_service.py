# backend/app/services/booking_service.py
"""
Booking Service for the trainer booking platform.

Owns the booking state machine:

    PENDING -> CONFIRMED
    PENDING -> CANCELLED
    CONFIRMED -> CANCELLED

and the rules that keep ``TrainingSession.client_id`` in line with the
booking under the configured client-assignment policy.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import ClientAssignmentPolicy, settings
from ..core.enums import BookingStatus, CancelledBy, RoleName, SessionStatus
from ..core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.session_booking import SessionBooking
from ..models.training_session import TrainingSession
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..repositories.session_booking_repository import SessionBookingRepository
from ..repositories.training_session_repository import TrainingSessionRepository
from .access import require_role
from .base import BaseService

logger = logging.getLogger(__name__)


def assign_client_on_booking(
    session: TrainingSession, client_id: str, policy: ClientAssignmentPolicy
) -> None:
    """Tentatively assign the session to the booking client unless assignment waits for payment."""
    if policy != "on_payment" and session.client_id is None:
        session.client_id = client_id


def release_client_assignment(
    session: TrainingSession, client_id: str, policy: ClientAssignmentPolicy
) -> None:
    """Clear the session's client after a cancellation or failed payment under the release policy."""
    if policy == "release" and session.client_id == client_id:
        session.client_id = None


class BookingService(BaseService):
    """Service layer for session bookings."""

    def __init__(
        self,
        db: Session,
        repository: Optional[SessionBookingRepository] = None,
        session_repository: Optional[TrainingSessionRepository] = None,
        assignment_policy: Optional[ClientAssignmentPolicy] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.session_repository = (
            session_repository or RepositoryFactory.create_training_session_repository(db)
        )
        self.assignment_policy: ClientAssignmentPolicy = (
            assignment_policy or settings.client_assignment_policy
        )

    def _get_booking(self, booking_id: str) -> SessionBooking:
        booking = self.repository.get_with_session(booking_id)
        if not booking:
            raise NotFoundException("Booking not found")
        return booking

    @BaseService.measure_operation("book_session")
    def book_session(
        self, client: User, session_id: str, message: Optional[str] = None
    ) -> SessionBooking:
        """
        Create a PENDING booking for ``client`` on a scheduled session.

        Raises:
            ForbiddenException: Caller is not a client
            NotFoundException: Session does not exist
            ValidationException: Session not scheduled or assigned to someone else
            BookingConflictException: The session already carries a booking
        """
        require_role(client, RoleName.CLIENT, action="book sessions")
        session = self.session_repository.get_with_booking(session_id)
        if not session:
            raise NotFoundException("Session not found")
        if session.status != SessionStatus.SCHEDULED.value:
            raise ValidationException(
                "Session is not available for booking",
                code="SESSION_NOT_BOOKABLE",
                details={"status": session.status},
            )
        if session.booking is not None:
            raise BookingConflictException(details={"booking_id": session.booking.id})
        if session.client_id and session.client_id != client.id:
            raise ValidationException(
                "Session is assigned to a different client", code="SESSION_ASSIGNED"
            )

        with self.transaction():
            try:
                booking = self.repository.create(
                    session_id=session.id,
                    client_id=client.id,
                    message=message,
                    status=BookingStatus.PENDING.value,
                )
            except RepositoryException as exc:
                if isinstance(exc.__cause__, IntegrityError):
                    raise BookingConflictException() from exc
                raise
            session.booking = booking
            assign_client_on_booking(session, client.id, self.assignment_policy)
            self.session_repository.flush()

        self.log_operation("book_session", booking_id=booking.id, session_id=session.id)
        return booking

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(
        self, trainer: User, booking_id: str, response: Optional[str] = None
    ) -> SessionBooking:
        booking = self._get_booking(booking_id)
        if booking.session.trainer_id != trainer.id:
            raise ForbiddenException("You can only confirm your own session bookings")
        if booking.status != BookingStatus.PENDING.value:
            raise ValidationException(
                "Booking is not in pending status",
                code="BOOKING_NOT_PENDING",
                details={"status": booking.status},
            )

        with self.transaction():
            booking.confirm(trainer.id, response)
            self.repository.flush()

        self.log_operation("confirm_booking", booking_id=booking.id)
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, user: User, booking_id: str, reason: Optional[str] = None
    ) -> SessionBooking:
        """Cancel a booking as its client or as the session's trainer."""
        booking = self._get_booking(booking_id)
        session = booking.session
        if user.id not in (booking.client_id, session.trainer_id):
            raise ForbiddenException("You can only cancel your own bookings")
        if booking.is_cancelled:
            raise ValidationException("Booking is already cancelled", code="BOOKING_CANCELLED")

        cancelled_by = CancelledBy.CLIENT if user.id == booking.client_id else CancelledBy.TRAINER
        with self.transaction():
            booking.cancel(cancelled_by, reason)
            release_client_assignment(session, booking.client_id, self.assignment_policy)
            self.repository.flush()

        self.log_operation(
            "cancel_booking", booking_id=booking.id, cancelled_by=cancelled_by.value
        )
        return booking

    @BaseService.measure_operation("get_booking")
    def get_booking(self, user: User, booking_id: str) -> SessionBooking:
        booking = self._get_booking(booking_id)
        if not (
            user.is_admin
            or user.id == booking.client_id
            or user.id == booking.session.trainer_id
        ):
            raise ForbiddenException("You do not have access to this booking")
        return booking
