"""
Shared test fixtures and configuration for entire test suite.

Provides: in-memory SQLite database, TestClient with dependency overrides,
frozen clock, mocked Stripe service, and small row factories
"""

import os

# Configure the app before anything imports scoopdash.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["BUSINESS_TIMEZONE"] = "UTC"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import datetime  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from scoopdash.database import Base, SessionLocal, engine, get_db  # noqa: E402
from scoopdash.main import app  # noqa: E402
from scoopdash.models import (  # noqa: E402
    Customer,
    Employee,
    Service,
    ServiceArea,
    User,
)
from scoopdash.security_utils import create_jwt_token, hash_password  # noqa: E402
from scoopdash.services.job_automation import get_clock  # noqa: E402
from scoopdash.services.stripe_service import get_stripe_service  # noqa: E402

# Tuesday, inside operating hours (BUSINESS_TIMEZONE=UTC)
DEFAULT_NOW = datetime(2025, 6, 10, 15, 0, 0)
TODAY_9AM = datetime(2025, 6, 10, 9, 0, 0)

DENVER_ZIP = "80202"
DENVER_LAT, DENVER_LON = 39.7527, -104.9993


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db_session():
    """Fresh schema per test on the shared in-memory connection"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FrozenClock(DEFAULT_NOW)


@pytest.fixture
def mock_stripe():
    stripe = AsyncMock()
    stripe.list_payment_intents.return_value = []
    stripe.list_transfers.return_value = []
    stripe.create_transfer.return_value = {"id": "tr_test_123"}
    return stripe


@pytest.fixture
def client(db_session, clock, mock_stripe):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_stripe_service] = lambda: mock_stripe
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_jwt_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role: str = "customer", email: str = None, full_name: str = None, password: str = "password123"):
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            full_name=full_name or f"{role.title()} {counter['n']}",
            hashed_password=hash_password(password),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_employee(db_session, make_user):
    def _make(
        rating: float = 5.0,
        areas=((DENVER_ZIP, 10),),
        latitude: float = DENVER_LAT,
        longitude: float = DENVER_LON,
        **fields,
    ) -> Employee:
        user = make_user("employee")
        employee = Employee(
            user_id=user.id,
            average_rating=rating,
            latitude=latitude,
            longitude=longitude,
            **fields,
        )
        employee.service_areas = [ServiceArea(zip_code=z, travel_distance=d) for z, d in areas]
        db_session.add(employee)
        db_session.commit()
        db_session.refresh(employee)
        return employee

    return _make


@pytest.fixture
def make_customer(db_session, make_user):
    def _make(
        zip_code: str = DENVER_ZIP,
        latitude: float = DENVER_LAT,
        longitude: float = DENVER_LON,
        **fields,
    ) -> Customer:
        user = make_user("customer")
        customer = Customer(
            user_id=user.id,
            street="1600 Blake St",
            city="Denver",
            state="CO",
            zip_code=zip_code,
            latitude=latitude,
            longitude=longitude,
            **fields,
        )
        db_session.add(customer)
        db_session.commit()
        db_session.refresh(customer)
        return customer

    return _make


@pytest.fixture
def make_job(db_session):
    def _make(customer: Customer, **fields) -> Service:
        values = {
            "status": "scheduled",
            "scheduled_date": TODAY_9AM,
            "is_locked": False,
            "potential_earnings": 20.0,
        }
        values.update(fields)
        job = Service(customer_id=customer.id, **values)
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job

    return _make
