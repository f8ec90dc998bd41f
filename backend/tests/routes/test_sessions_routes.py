from app.core.enums import BookingStatus
from tests.factories.builders import create_availability, create_session, next_weekday


def _create_payload(on_date, start_time="10:00", end_time="11:00", **extra):
    return {
        "title": "Conditioning",
        "session_date": on_date.isoformat(),
        "start_time": start_time,
        "end_time": end_time,
        **extra,
    }


def test_availability_crud(client, auth_headers_trainer):
    created = client.post(
        "/sessions/availability",
        json={"day_of_week": 2, "start_time": "8:00", "end_time": "12:00"},
        headers=auth_headers_trainer,
    )
    assert created.status_code == 201
    window = created.json()
    assert window["start_time"] == "08:00"

    listed = client.get("/sessions/my-availability", headers=auth_headers_trainer)
    assert [w["id"] for w in listed.json()] == [window["id"]]

    updated = client.patch(
        f"/sessions/availability/{window['id']}",
        json={"end_time": "13:00"},
        headers=auth_headers_trainer,
    )
    assert updated.json()["end_time"] == "13:00"

    deleted = client.delete(f"/sessions/availability/{window['id']}", headers=auth_headers_trainer)
    assert deleted.status_code == 204
    assert client.get("/sessions/my-availability", headers=auth_headers_trainer).json() == []


def test_overlapping_availability_is_409(client, auth_headers_trainer):
    client.post(
        "/sessions/availability",
        json={"day_of_week": 2, "start_time": "08:00", "end_time": "12:00"},
        headers=auth_headers_trainer,
    )

    response = client.post(
        "/sessions/availability",
        json={"day_of_week": 2, "start_time": "11:00", "end_time": "14:00"},
        headers=auth_headers_trainer,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "AVAILABILITY_OVERLAP"


def test_unknown_fields_are_rejected(client, auth_headers_trainer):
    response = client.post(
        "/sessions/availability",
        json={"day_of_week": 2, "start_time": "08:00", "end_time": "12:00", "color": "red"},
        headers=auth_headers_trainer,
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_create_session_and_conflict(client, db, trainer_user, auth_headers_trainer):
    on_date = next_weekday(1)
    create_availability(db, trainer_user, day=1, start_time="09:00", end_time="17:00")

    created = client.post(
        "/sessions", json=_create_payload(on_date, price=45), headers=auth_headers_trainer
    )
    assert created.status_code == 201
    body = created.json()
    assert body["duration"] == 60
    assert body["price"] == 45.0
    assert body["status"] == "SCHEDULED"

    conflict = client.post(
        "/sessions",
        json=_create_payload(on_date, "10:30", "11:30"),
        headers=auth_headers_trainer,
    )
    assert conflict.status_code == 409
    problem = conflict.json()
    assert problem["code"] == "SESSION_CONFLICT"
    assert problem["errors"]["conflicting_session_id"] == body["id"]


def test_session_outside_availability_is_400(client, auth_headers_trainer):
    response = client.post(
        "/sessions", json=_create_payload(next_weekday(4)), headers=auth_headers_trainer
    )

    assert response.status_code == 400
    assert response.json()["code"] == "TRAINER_UNAVAILABLE"


def test_book_confirm_and_cancel(
    client, db, trainer_user, auth_headers_trainer, auth_headers_client, client_user
):
    session = create_session(db, trainer_user)

    booked = client.post(
        f"/sessions/{session.id}/book",
        json={"message": "Knee is fine now"},
        headers=auth_headers_client,
    )
    assert booked.status_code == 201
    booking = booked.json()
    assert booking["status"] == BookingStatus.PENDING.value
    assert booking["client_id"] == client_user.id

    details = client.get(f"/sessions/{session.id}", headers=auth_headers_client).json()
    assert details["booking"]["id"] == booking["id"]

    confirmed = client.post(
        f"/sessions/bookings/{booking['id']}/confirm",
        json={"response": "Great"},
        headers=auth_headers_trainer,
    )
    assert confirmed.json()["status"] == BookingStatus.CONFIRMED.value

    cancelled = client.post(
        f"/sessions/bookings/{booking['id']}/cancel",
        json={"reason": "Travel"},
        headers=auth_headers_client,
    )
    assert cancelled.json()["cancelled_by"] == "CLIENT"


def test_double_booking_is_409(
    client, db, trainer_user, auth_headers_client, auth_headers_other_client
):
    session = create_session(db, trainer_user)
    client.post(f"/sessions/{session.id}/book", headers=auth_headers_client)

    response = client.post(f"/sessions/{session.id}/book", headers=auth_headers_other_client)

    assert response.status_code == 409
    assert response.json()["code"] == "BOOKING_CONFLICT"


def test_other_client_cannot_read_booked_session(
    client, db, trainer_user, auth_headers_client, auth_headers_other_client
):
    session = create_session(db, trainer_user)
    client.post(f"/sessions/{session.id}/book", headers=auth_headers_client)

    response = client.get(f"/sessions/{session.id}", headers=auth_headers_other_client)

    assert response.status_code == 403


def test_missing_session_is_404(client, auth_headers_trainer):
    response = client.get("/sessions/01HZZZZZZZZZZZZZZZZZZZZZZZ", headers=auth_headers_trainer)

    assert response.status_code == 404


def test_update_and_delete_session(client, db, trainer_user, auth_headers_trainer):
    session = create_session(db, trainer_user)

    updated = client.patch(
        f"/sessions/{session.id}", json={"title": "Hill sprints"}, headers=auth_headers_trainer
    )
    assert updated.json()["title"] == "Hill sprints"

    assert client.delete(f"/sessions/{session.id}", headers=auth_headers_trainer).status_code == 204
    assert client.get(f"/sessions/{session.id}", headers=auth_headers_trainer).status_code == 404


def test_available_slots_and_search(client, db, trainer_user, auth_headers_client):
    on_date = next_weekday(3)
    create_availability(db, trainer_user, day=3, start_time="09:00", end_time="12:00")
    create_session(db, trainer_user, session_date=on_date, start_time="10:00", end_time="11:00")

    slots = client.get(
        f"/sessions/available-slots/{trainer_user.id}",
        params={"date": on_date.isoformat()},
        headers=auth_headers_client,
    ).json()
    assert slots["slots"] == [
        {"start_time": "09:00", "end_time": "10:00"},
        {"start_time": "11:00", "end_time": "12:00"},
    ]

    search = client.get(
        "/sessions/trainers/search",
        params={"date": on_date.isoformat(), "q": "taylor"},
        headers=auth_headers_client,
    ).json()
    assert [r["trainer"]["id"] for r in search["trainers"]] == [trainer_user.id]


def test_stats(client, db, trainer_user, auth_headers_trainer):
    create_session(db, trainer_user)

    stats = client.get("/sessions/stats", headers=auth_headers_trainer).json()

    assert stats["total"] == 1
    assert stats["scheduled"] == 1
