"""Session lifecycle: scheduling checks, updates, deletion rules and visibility."""

from decimal import Decimal

import pytest

from app.core.enums import BookingStatus, PaymentStatus, SessionStatus
from app.core.exceptions import (
    ConflictException,
    ForbiddenException,
    SessionConflictException,
    ValidationException,
)
from app.schemas.training_session import SessionCreate, SessionUpdate
from app.services.training_session_service import TrainingSessionService
from tests.factories.builders import (
    create_availability,
    create_booking,
    create_payment,
    create_session,
    next_weekday,
)


def _payload(on_date, start_time="10:00", end_time="11:00", **overrides):
    return SessionCreate(
        title=overrides.pop("title", "Mobility"),
        session_date=on_date,
        start_time=start_time,
        end_time=end_time,
        **overrides,
    )


@pytest.fixture
def monday(db, trainer_user):
    on_date = next_weekday(1)
    create_availability(db, trainer_user, day=1, start_time="09:00", end_time="17:00")
    return on_date


def test_create_session_inside_availability(db, trainer_user, monday):
    service = TrainingSessionService(db, enforce_availability=True)

    session = service.create_session(
        trainer_user, _payload(monday, "9:30", "10:45", price=Decimal("40"))
    )

    assert session.status == SessionStatus.SCHEDULED.value
    assert session.start_time == "09:30"
    assert session.duration == 75
    assert session.currency == "USD"


def test_create_session_outside_availability_rejected(db, trainer_user, monday):
    service = TrainingSessionService(db, enforce_availability=True)

    with pytest.raises(ValidationException) as exc_info:
        service.create_session(trainer_user, _payload(monday, "16:30", "17:30"))
    assert exc_info.value.code == "TRAINER_UNAVAILABLE"


def test_availability_check_can_be_disabled(db, trainer_user):
    service = TrainingSessionService(db, enforce_availability=False)

    session = service.create_session(trainer_user, _payload(next_weekday(0)))

    assert session.id


def test_overlapping_session_rejected(db, trainer_user, monday):
    service = TrainingSessionService(db, enforce_availability=True)
    existing = service.create_session(trainer_user, _payload(monday, "10:00", "11:00"))

    with pytest.raises(SessionConflictException) as exc_info:
        service.create_session(trainer_user, _payload(monday, "10:30", "11:30"))
    assert exc_info.value.details["conflicting_session_id"] == existing.id

    # Back-to-back sessions do not overlap
    service.create_session(trainer_user, _payload(monday, "11:00", "12:00"))


def test_cancelled_sessions_do_not_block_the_slot(db, trainer_user, monday):
    create_session(
        db,
        trainer_user,
        session_date=monday,
        start_time="10:00",
        end_time="11:00",
        status=SessionStatus.CANCELLED,
    )

    session = TrainingSessionService(db).create_session(
        trainer_user, _payload(monday, "10:00", "11:00")
    )
    assert session.status == SessionStatus.SCHEDULED.value


@pytest.mark.parametrize("price", [Decimal("-1"), Decimal("10000.01")])
def test_price_bounds(db, trainer_user, monday, price):
    with pytest.raises(ValidationException) as exc_info:
        TrainingSessionService(db).create_session(trainer_user, _payload(monday, price=price))
    assert exc_info.value.code == "INVALID_PRICE"


def test_preassigned_client_must_be_a_client(db, trainer_user, other_trainer_user, monday):
    with pytest.raises(ValidationException) as exc_info:
        TrainingSessionService(db).create_session(
            trainer_user, _payload(monday, client_id=other_trainer_user.id)
        )
    assert exc_info.value.code == "INVALID_CLIENT"


def test_clients_cannot_create_sessions(db, client_user, monday):
    with pytest.raises(ForbiddenException):
        TrainingSessionService(db).create_session(client_user, _payload(monday))


def test_status_transitions(db, trainer_user):
    session = create_session(db, trainer_user)
    service = TrainingSessionService(db)

    updated = service.update_session(
        trainer_user, session.id, SessionUpdate(status=SessionStatus.COMPLETED)
    )
    assert updated.status == SessionStatus.COMPLETED.value

    with pytest.raises(ValidationException) as exc_info:
        service.update_session(
            trainer_user, session.id, SessionUpdate(status=SessionStatus.SCHEDULED)
        )
    assert exc_info.value.code == "INVALID_STATUS_TRANSITION"

    with pytest.raises(ValidationException) as exc_info:
        service.update_session(trainer_user, session.id, SessionUpdate(title="Renamed"))
    assert exc_info.value.code == "SESSION_NOT_EDITABLE"


def test_reschedule_rechecks_overlap(db, trainer_user, monday):
    service = TrainingSessionService(db)
    first = create_session(
        db, trainer_user, session_date=monday, start_time="09:00", end_time="10:00"
    )
    second = create_session(
        db, trainer_user, session_date=monday, start_time="11:00", end_time="12:00"
    )

    with pytest.raises(SessionConflictException):
        service.update_session(
            trainer_user, second.id, SessionUpdate(start_time="09:30", end_time="10:30")
        )

    moved = service.update_session(
        trainer_user, first.id, SessionUpdate(start_time="13:00", end_time="14:30")
    )
    assert (moved.start_time, moved.end_time, moved.duration) == ("13:00", "14:30", 90)


def test_update_requires_ownership(db, trainer_user, other_trainer_user):
    session = create_session(db, trainer_user)

    with pytest.raises(ForbiddenException):
        TrainingSessionService(db).update_session(
            other_trainer_user, session.id, SessionUpdate(title="Mine now")
        )


def test_delete_blocked_by_active_booking(db, trainer_user, client_user):
    session = create_session(db, trainer_user)
    create_booking(db, session, client_user)

    with pytest.raises(ValidationException) as exc_info:
        TrainingSessionService(db).delete_session(trainer_user, session.id)
    assert exc_info.value.code == "SESSION_HAS_BOOKING"


def test_delete_blocked_by_payments(db, trainer_user, client_user):
    session = create_session(db, trainer_user)
    create_booking(db, session, client_user, status=BookingStatus.CANCELLED)
    create_payment(db, session, client_user, status=PaymentStatus.FAILED)

    with pytest.raises(ConflictException) as exc_info:
        TrainingSessionService(db).delete_session(trainer_user, session.id)
    assert exc_info.value.code == "SESSION_HAS_PAYMENTS"


def test_delete_unbooked_session(db, trainer_user):
    session = create_session(db, trainer_user)
    service = TrainingSessionService(db)

    service.delete_session(trainer_user, session.id)

    assert service.repository.get_by_id(session.id) is None


def test_visibility(db, trainer_user, client_user, other_client_user, admin_user):
    session = create_session(db, trainer_user)
    create_booking(db, session, client_user)
    service = TrainingSessionService(db)

    assert service.get_session(trainer_user, session.id).id == session.id
    assert service.get_session(client_user, session.id).id == session.id
    assert service.get_session(admin_user, session.id).id == session.id
    with pytest.raises(ForbiddenException):
        service.get_session(other_client_user, session.id)


def test_list_and_stats(db, trainer_user, client_user):
    scheduled = create_session(db, trainer_user, client=client_user)
    completed = create_session(
        db,
        trainer_user,
        start_time="12:00",
        end_time="13:00",
        status=SessionStatus.COMPLETED,
    )
    create_booking(db, scheduled, client_user, status=BookingStatus.CONFIRMED)
    service = TrainingSessionService(db)

    assert len(service.list_sessions(trainer_user)) == 2
    assert [s.id for s in service.list_sessions(client_user)] == [scheduled.id]
    assert [
        s.id for s in service.list_sessions(trainer_user, status=SessionStatus.COMPLETED)
    ] == [completed.id]

    stats = service.get_session_stats(trainer_user)
    assert (stats.total, stats.scheduled, stats.completed) == (2, 1, 1)
    assert stats.confirmed_bookings == 1

    client_stats = service.get_session_stats(client_user)
    assert client_stats.total == 1
    assert client_stats.confirmed_bookings == 1
