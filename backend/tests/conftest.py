"""
Pytest fixtures for the business store tests.

Provides an app with an in-memory database (fresh schema per test), a frozen
clock, a recording alerter, and a BusinessStore wired to both.
"""

from datetime import datetime, timedelta

import pytest

from ledgerly import create_app
from ledgerly.extensions import db
from ledgerly.store import BusinessStore


NOW = datetime(2026, 10, 17, 12, 0, 0)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> datetime:
        self.current = value
        return self.current


class RecordingAlerter:
    def __init__(self, confirm_answer: bool = True):
        self.errors = []
        self.prompts = []
        self.confirm_answer = confirm_answer

    def error(self, message):
        self.errors.append(message)

    def confirm(self, message):
        self.prompts.append(message)
        return self.confirm_answer


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CREATE_SCHEMA_ON_START': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def clock():
    return FrozenClock(NOW)


@pytest.fixture(scope='function')
def alerter():
    return RecordingAlerter()


@pytest.fixture(scope='function')
def store(app, clock, alerter):
    return BusinessStore(clock=clock, alerter=alerter)


@pytest.fixture(scope='function')
def customer_id(store):
    """Existing customer "Acme Ltd" with zeroed balances."""
    return store.create_customer({
        "name": "Acme Ltd",
        "email": "billing@acme.test",
        "phone": "+1 555 0100",
        "company": "Acme",
    })


@pytest.fixture(scope='function')
def widget_id(store):
    """Product "Widget": 10 on hand, low-stock threshold 5."""
    return store.create_product({
        "name": "Widget",
        "sku": "WID-001",
        "category": "Hardware",
        "price_cents": 250,
        "cost_price_cents": 100,
        "quantity": 10,
        "low_stock_threshold": 5,
    })
