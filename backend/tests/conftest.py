import threading
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from storm_intel.database import init_db, make_engine, make_session_factory
from storm_intel.errors import PushDeliveryError
from storm_intel.middleware.jwt_session import create_access_token
from storm_intel.models.crm import Customer, User
from storm_intel.models.notification import PushSubscription
from storm_intel.models.weather import WeatherEvent

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakePushTransport:
    """Records deliveries; endpoints listed in ``failures`` raise with that status."""

    def __init__(self, failures: dict[str, int | None] | None = None, delay: float = 0.0):
        self.failures = failures or {}
        self.delay = delay
        self.sent: list[str] = []
        self._lock = threading.Lock()

    def send(self, endpoint: str, p256dh: str, auth: str, payload: str) -> None:
        if self.delay:
            threading.Event().wait(self.delay)
        with self._lock:
            self.sent.append(endpoint)
        if endpoint in self.failures:
            raise PushDeliveryError(f"push service rejected {endpoint}", status_code=self.failures[endpoint])


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'storm_intel_test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_user(db, role="rep", is_active=True, email=None) -> User:
    user = User(
        email=email or f"{role}-{uuid4().hex[:8]}@example.com",
        name=f"Test {role}",
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_subscription(db, user: User, endpoint: str) -> PushSubscription:
    sub = PushSubscription(user_id=user.id, endpoint=endpoint, p256dh="p256dh-key", auth="auth-key")
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub


def make_event(db=None, **kwargs) -> WeatherEvent:
    defaults = {
        "id": uuid4().hex,
        "latitude": 39.95,
        "longitude": -75.16,
        "city": "Philadelphia",
        "county": "Philadelphia",
        "state": "PA",
        "event_type": "hail",
        "event_date": NOW - timedelta(days=1),
        "severity": "moderate",
        "affected_customers": 0,
        "estimated_damage": 0.0,
    }
    defaults.update(kwargs)
    event = WeatherEvent(**defaults)
    if db is not None:
        db.add(event)
        db.commit()
    return event


def make_customer(db, **kwargs) -> Customer:
    defaults = {
        "first_name": "Pat",
        "last_name": "Doe",
        "address": "1 Market St",
        "city": "Philadelphia",
        "state": "PA",
        "zip_code": "19103",
        "county": "Philadelphia",
        "latitude": 39.9526,
        "longitude": -75.1652,
        "lead_score": 50,
        "status": "lead",
    }
    defaults.update(kwargs)
    customer = Customer(**defaults)
    db.add(customer)
    db.commit()
    return customer


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}
