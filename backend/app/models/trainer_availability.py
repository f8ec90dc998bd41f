# backend/app/models/trainer_availability.py
"""
Trainer availability windows.

A row is either a weekly recurring window (``specific_date`` is NULL and
``day_of_week`` says which weekday, Sunday = 0) or a window pinned to one
calendar date. ``is_available = False`` marks a blocked window that
overrides open windows on the same date.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class TrainerAvailability(Base):
    """Open or blocked time window declared by a trainer."""

    __tablename__ = "trainer_availability"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    trainer_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    specific_date = Column(Date, nullable=True)
    # Zero-padded HH:MM so string comparison matches clock order
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=True)
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    trainer = relationship("User", foreign_keys=[trainer_id])

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_availability_time_order"),
        Index("ix_trainer_availability_trainer_day", "trainer_id", "day_of_week"),
        Index("ix_trainer_availability_trainer_date", "trainer_id", "specific_date"),
    )

    @property
    def slot_key(self) -> str:
        """Human readable key the window applies to (a date or a weekday)."""
        if self.specific_date is not None:
            return self.specific_date.isoformat()
        return f"day {self.day_of_week}"

    def __repr__(self) -> str:
        return (
            f"<TrainerAvailability {self.trainer_id} {self.slot_key} "
            f"{self.start_time}-{self.end_time} available={self.is_available}>"
        )
