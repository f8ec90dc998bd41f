from datetime import timedelta

from app.auth import create_access_token
from app.core.enums import RoleName
from app.middleware.prometheus_middleware import normalize_path
from tests.factories.builders import create_user


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_missing_token_is_unauthorized(client):
    response = client.get("/sessions/my-sessions")

    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"
    assert response.headers["www-authenticate"] == "Bearer"


def test_garbage_token_is_unauthorized(client):
    response = client.get("/sessions/my-sessions", headers=_bearer("not-a-jwt"))

    assert response.status_code == 401


def test_expired_token_is_unauthorized(client, trainer_user):
    token = create_access_token(
        trainer_user.id, RoleName.TRAINER, expires_delta=timedelta(minutes=-5)
    )

    response = client.get("/sessions/my-sessions", headers=_bearer(token))

    assert response.status_code == 401


def test_inactive_user_is_unauthorized(client, db):
    user = create_user(db, "gone@example.com", RoleName.CLIENT, is_active=False)

    response = client.get(
        "/sessions/my-sessions", headers=_bearer(create_access_token(user.id, RoleName.CLIENT))
    )

    assert response.status_code == 401


def test_stale_role_claim_is_unauthorized(client, trainer_user):
    token = create_access_token(trainer_user.id, RoleName.CLIENT)

    response = client.get("/sessions/my-sessions", headers=_bearer(token))

    assert response.status_code == 401


def test_wrong_role_is_forbidden(client, auth_headers_client):
    response = client.post(
        "/sessions/availability",
        json={"day_of_week": 1, "start_time": "09:00", "end_time": "10:00"},
        headers=auth_headers_client,
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "Requires role: TRAINER"


def test_valid_token_is_accepted(client, auth_headers_trainer):
    response = client.get("/sessions/my-sessions", headers=auth_headers_trainer)

    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] is True
    assert response.headers["cache-control"] == "no-store"


def test_metrics_exposition(client):
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "trainer_http_requests_total" in response.text


def test_root(client):
    assert "version" in client.get("/").json()


def test_path_normalization_collapses_ids():
    assert normalize_path("/sessions/01HZX3Q4Y8W2E5R6T7Y8V9K0PA/book") == "/sessions/:id/book"
    assert normalize_path("/payments/42/sync") == "/payments/:id/sync"
