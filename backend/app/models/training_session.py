# backend/app/models/training_session.py
"""
Training session model.

A session is a calendar event owned by a trainer and optionally assigned
to a client. ``client_id`` is the single source of truth for who the
session is for and is kept in line with the booking by the reconciliation
rules in the payment and booking services.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import SessionStatus, SessionType
from ..database import Base


class TrainingSession(Base):
    """Scheduled training session between a trainer and an optional client."""

    __tablename__ = "training_sessions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    trainer_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    client_id = Column(String(26), ForeignKey("users.id"), nullable=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    session_date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration = Column(Integer, nullable=False, comment="Minutes, derived from start/end")
    session_type = Column(String(20), nullable=False, default=SessionType.PERSONAL.value)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)
    location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    workout_plan_id = Column(String(26), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    trainer = relationship("User", foreign_keys=[trainer_id])
    client = relationship("User", foreign_keys=[client_id])
    booking = relationship(
        "SessionBooking",
        back_populates="session",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_training_sessions_time_order"),
        CheckConstraint("duration > 0", name="ck_training_sessions_duration_positive"),
        CheckConstraint(
            "price IS NULL OR (price >= 0 AND price <= 10000)",
            name="ck_training_sessions_price_range",
        ),
        Index("ix_training_sessions_trainer_date", "trainer_id", "session_date"),
        Index("ix_training_sessions_client", "client_id"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status != SessionStatus.SCHEDULED.value

    @property
    def price_amount(self) -> Optional[Decimal]:
        return Decimal(str(self.price)) if self.price is not None else None

    def __repr__(self) -> str:
        return (
            f"<TrainingSession {self.id} trainer={self.trainer_id} "
            f"{self.session_date} {self.start_time}-{self.end_time} {self.status}>"
        )
