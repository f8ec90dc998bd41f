# backend/tests/conftest.py
"""
Pytest configuration.

Test settings are exported BEFORE any app import so ``app.core.config``
never reads a developer ``.env``. The schema lives in one in-memory SQLite
database; every test runs inside a connection-level transaction that is
rolled back afterwards, so service commits only release SAVEPOINTs.
"""

import os

# CRITICAL: Set test configuration BEFORE any app imports!
os.environ["CI"] = "1"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-access-tokens-0123456789"
os.environ["PAYMENTS_FAKE"] = "false"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["LIQPAY_PUBLIC_KEY"] = ""
os.environ["CLIENT_ASSIGNMENT_POLICY"] = "tentative"
os.environ["ENFORCE_TRAINER_AVAILABILITY"] = "true"

from typing import Any, Dict, Iterator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.api.dependencies.database import get_db
from app.api.dependencies.services import get_payment_gateways, get_subscription_gateway
from app.auth import create_access_token
from app.core.enums import PaymentProvider, RoleName
from app.database import Base
from app.integrations.fake_gateway import FakePaymentGateway
from app.main import fastapi_app as app  # Use FastAPI instance for tests
from app.models.user import User
from app.services.exchange_rates import StaticExchangeRateProvider
from app.services.webhook_ledger_service import WebhookLedgerService
from tests.factories.builders import create_user

# ============================================================================
# DATABASE
# ============================================================================


@pytest.fixture(scope="session")
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # pysqlite's own transaction handling breaks SAVEPOINT; SQLAlchemy emits BEGIN instead
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(test_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Iterator[Session]:
    """Session whose commits stay inside a transaction rolled back after the test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


# ============================================================================
# USERS
# ============================================================================


@pytest.fixture
def trainer_user(db: Session) -> User:
    return create_user(db, "trainer@example.com", RoleName.TRAINER, full_name="Taylor Trainer")


@pytest.fixture
def other_trainer_user(db: Session) -> User:
    return create_user(db, "coach@example.com", RoleName.TRAINER, full_name="Casey Coach")


@pytest.fixture
def client_user(db: Session) -> User:
    return create_user(db, "client@example.com", RoleName.CLIENT, full_name="Chris Client")


@pytest.fixture
def other_client_user(db: Session) -> User:
    return create_user(db, "other.client@example.com", RoleName.CLIENT, full_name="Olive Other")


@pytest.fixture
def admin_user(db: Session) -> User:
    return create_user(db, "admin@example.com", RoleName.ADMIN, full_name="Ada Admin")


def _auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def auth_headers_trainer(trainer_user: User) -> Dict[str, str]:
    return _auth_headers(trainer_user)


@pytest.fixture
def auth_headers_client(client_user: User) -> Dict[str, str]:
    return _auth_headers(client_user)


@pytest.fixture
def auth_headers_other_client(other_client_user: User) -> Dict[str, str]:
    return _auth_headers(other_client_user)


@pytest.fixture
def auth_headers_admin(admin_user: User) -> Dict[str, str]:
    return _auth_headers(admin_user)


# ============================================================================
# GATEWAYS
# ============================================================================


@pytest.fixture
def stripe_gateway() -> FakePaymentGateway:
    return FakePaymentGateway(PaymentProvider.STRIPE)


@pytest.fixture
def liqpay_gateway() -> FakePaymentGateway:
    return FakePaymentGateway(PaymentProvider.LIQPAY)


@pytest.fixture
def gateways(
    stripe_gateway: FakePaymentGateway, liqpay_gateway: FakePaymentGateway
) -> Dict[PaymentProvider, FakePaymentGateway]:
    return {PaymentProvider.STRIPE: stripe_gateway, PaymentProvider.LIQPAY: liqpay_gateway}


@pytest.fixture
def exchange_rates() -> StaticExchangeRateProvider:
    return StaticExchangeRateProvider()


@pytest.fixture
def ledger(db: Session) -> WebhookLedgerService:
    return WebhookLedgerService(db)


# ============================================================================
# HTTP CLIENT
# ============================================================================


@pytest.fixture
def client(
    db: Session,
    gateways: Dict[PaymentProvider, FakePaymentGateway],
    liqpay_gateway: FakePaymentGateway,
) -> Iterator[TestClient]:
    """TestClient bound to the test session and the fake gateways."""

    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateways] = lambda: gateways
    app.dependency_overrides[get_subscription_gateway] = lambda: liqpay_gateway

    # Lifespan is not entered; the application engine stays unused
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()
