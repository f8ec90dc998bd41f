# backend/app/models/session_booking.py
"""
Session booking model.

At most one booking exists per training session; the unique constraint on
``session_id`` is what serializes concurrent booking attempts.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus, CancelledBy
from ..database import Base


class SessionBooking(Base):
    """A client's claim on a training session, independent of payment."""

    __tablename__ = "session_bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    session_id = Column(
        String(26), ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False
    )
    client_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    message = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)

    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_by = Column(String(26), ForeignKey("users.id"), nullable=True)
    trainer_response = Column(Text, nullable=True)

    cancelled_by = Column(String(20), nullable=True)
    cancellation_date = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    session = relationship("TrainingSession", back_populates="booking")
    client = relationship("User", foreign_keys=[client_id])

    __table_args__ = (UniqueConstraint("session_id", name="uq_session_bookings_session_id"),)

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    def confirm(self, confirmed_by: Optional[str], response: Optional[str] = None) -> None:
        self.status = BookingStatus.CONFIRMED.value
        self.confirmed_at = datetime.now(timezone.utc)
        self.confirmed_by = confirmed_by
        self.cancelled_by = None
        self.cancellation_date = None
        self.cancellation_reason = None
        if response is not None:
            self.trainer_response = response

    def cancel(self, cancelled_by: CancelledBy, reason: Optional[str] = None) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_by = cancelled_by.value
        self.cancellation_date = datetime.now(timezone.utc)
        self.cancellation_reason = reason

    def __repr__(self) -> str:
        return f"<SessionBooking {self.id} session={self.session_id} {self.status}>"
