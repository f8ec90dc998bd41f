"""Row builders for tests that need data without going through the services."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.enums import (
    BookingStatus,
    PaymentProvider,
    PaymentStatus,
    PaymentType,
    RoleName,
    SessionStatus,
)
from app.models.payment import Payment
from app.models.session_booking import SessionBooking
from app.models.trainer_availability import TrainerAvailability
from app.models.training_session import TrainingSession
from app.models.user import User
from app.utils.time_utils import day_of_week, duration_minutes


def next_weekday(weekday: int, start: Optional[date] = None) -> date:
    """First date after ``start`` (default today) whose Sunday-based index is ``weekday``."""
    current = (start or date.today()) + timedelta(days=1)
    while day_of_week(current) != weekday:
        current += timedelta(days=1)
    return current


def create_user(db: Session, email: str, role: RoleName, **overrides: Any) -> User:
    user = User(
        email=email,
        full_name=overrides.pop("full_name", email.split("@")[0].title()),
        role=role.value,
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db.add(user)
    db.commit()
    return user


def create_availability(
    db: Session,
    trainer: User,
    *,
    day: Optional[int] = None,
    specific_date: Optional[date] = None,
    start_time: str = "09:00",
    end_time: str = "17:00",
    is_available: bool = True,
) -> TrainerAvailability:
    availability = TrainerAvailability(
        trainer_id=trainer.id,
        day_of_week=day if specific_date is None else day_of_week(specific_date),
        specific_date=specific_date,
        start_time=start_time,
        end_time=end_time,
        is_recurring=specific_date is None,
        is_available=is_available,
    )
    db.add(availability)
    db.commit()
    return availability


def create_session(
    db: Session,
    trainer: User,
    *,
    session_date: Optional[date] = None,
    start_time: str = "10:00",
    end_time: str = "11:00",
    price: Optional[Decimal] = Decimal("50.00"),
    currency: str = "USD",
    client: Optional[User] = None,
    status: SessionStatus = SessionStatus.SCHEDULED,
    title: str = "Strength training",
) -> TrainingSession:
    session = TrainingSession(
        trainer_id=trainer.id,
        client_id=client.id if client else None,
        title=title,
        session_date=session_date or date.today() + timedelta(days=7),
        start_time=start_time,
        end_time=end_time,
        duration=duration_minutes(start_time, end_time),
        status=status.value,
        price=price,
        currency=currency,
    )
    db.add(session)
    db.commit()
    return session


def create_booking(
    db: Session,
    session: TrainingSession,
    client: User,
    status: BookingStatus = BookingStatus.PENDING,
) -> SessionBooking:
    booking = SessionBooking(session_id=session.id, client_id=client.id, status=status.value)
    db.add(booking)
    db.commit()
    db.refresh(session)
    return booking


def create_payment(
    db: Session,
    session: TrainingSession,
    client: User,
    *,
    provider: PaymentProvider = PaymentProvider.STRIPE,
    status: PaymentStatus = PaymentStatus.PENDING,
    external_reference: str = "pi_test_1",
    amount: Decimal = Decimal("50.00"),
    currency: str = "USD",
) -> Payment:
    payment = Payment(
        session_id=session.id,
        client_id=client.id,
        trainer_id=session.trainer_id,
        provider=provider.value,
        type=PaymentType.SESSION.value,
        amount=amount,
        currency=currency,
        charged_amount=amount,
        charged_currency=currency,
        platform_fee=(amount / 10).quantize(Decimal("0.01")),
        external_reference=external_reference,
        status=status.value,
    )
    db.add(payment)
    db.commit()
    return payment
