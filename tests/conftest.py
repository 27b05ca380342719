"""
Global pytest configuration and fixtures.

Provides a controllable application clock, an in-process record store, the
``BusinessService`` built on it, and a Flask application/test client wired
to the same store so tests can seed data through the service and read it
back over HTTP.

Fixtures:
    fixed_clock: ``FixedClock`` pinned to 2025-03-15 09:00 UTC
    clock_factory: The ``FixedClock`` class itself
    memory_store: Empty ``InMemoryRecordStore`` on ``fixed_clock``
    business_service: ``BusinessService`` over ``memory_store``
    app / client: Testing application sharing ``memory_store``
    make_business: Factory for valid registration payloads
"""

import itertools
from datetime import datetime, timedelta
from typing import Any, Callable, Dict

import pytest
from dateutil import tz
from flask import Flask
from flask.testing import FlaskClient

from bizreg.app import create_app
from bizreg.business.services import BusinessService
from bizreg.data.memory import InMemoryRecordStore
from bizreg.utils.datetime_utils import Clock


class FixedClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, current: datetime, timezone_name: str = "UTC") -> None:
        super().__init__(timezone_name)
        self.current = current

    def now(self) -> datetime:
        return self.current.astimezone(self.tzinfo)

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(datetime(2025, 3, 15, 9, 0, tzinfo=tz.UTC))


@pytest.fixture
def clock_factory():
    """``FixedClock`` class, for tests needing a clock in another timezone."""
    return FixedClock


@pytest.fixture
def memory_store(fixed_clock: FixedClock) -> InMemoryRecordStore:
    return InMemoryRecordStore(clock=fixed_clock)


@pytest.fixture
def business_service(memory_store: InMemoryRecordStore, fixed_clock: FixedClock) -> BusinessService:
    return BusinessService(memory_store, clock=fixed_clock)


@pytest.fixture
def app(memory_store: InMemoryRecordStore, fixed_clock: FixedClock) -> Flask:
    application = create_app("testing", store=memory_store, clock=fixed_clock)
    with application.app_context():
        yield application


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def make_business() -> Callable[..., Dict[str, Any]]:
    """
    Build a valid registration payload; keyword arguments override fields.

    Successive calls produce distinct business names.
    """
    counter = itertools.count(1)

    def factory(**overrides: Any) -> Dict[str, Any]:
        index = next(counter)
        payload = {
            "firstname": "Maria",
            "middlename": "Santos",
            "lastname": "Cruz",
            "businessName": f"Sari-Sari Store {index}",
            "address": "12 Rizal Street, Quezon City",
            "status": "complete",
        }
        payload.update(overrides)
        return payload

    return factory


@pytest.fixture
def seeded_service(business_service: BusinessService, fixed_clock: FixedClock, make_business):
    """
    Service with records spread over 2023-2025.

    2023: 2 records (step1, complete)
    2024: 3 records (complete, complete, step2)
    2025: 4 records (step1, complete, complete, step3), two in January
    """
    plan = [
        (datetime(2023, 5, 2, 10, 0, tzinfo=tz.UTC), "step1", "Juan", "Alpha Trading"),
        (datetime(2023, 11, 20, 10, 0, tzinfo=tz.UTC), "complete", "Pedro", "Bravo Foods"),
        (datetime(2024, 2, 1, 10, 0, tzinfo=tz.UTC), "complete", "Juana", "Charlie Hardware"),
        (datetime(2024, 6, 9, 10, 0, tzinfo=tz.UTC), "complete", "Jose", "Delta Bakery"),
        (datetime(2024, 12, 30, 10, 0, tzinfo=tz.UTC), "step2", "Andres", "Echo Printing"),
        (datetime(2025, 1, 5, 10, 0, tzinfo=tz.UTC), "step1", "Emilio", "Foxtrot Salon"),
        (datetime(2025, 1, 28, 10, 0, tzinfo=tz.UTC), "complete", "Apolinario", "Golf Laundry"),
        (datetime(2025, 2, 14, 10, 0, tzinfo=tz.UTC), "complete", "Gabriela", "Hotel Carinderia"),
        (datetime(2025, 3, 10, 10, 0, tzinfo=tz.UTC), "step3", "Melchora", "India Pharmacy"),
    ]
    for created_at, status, firstname, business_name in plan:
        fixed_clock.set(created_at)
        business_service.create_business(
            make_business(firstname=firstname, businessName=business_name, status=status)
        )
    fixed_clock.set(datetime(2025, 3, 15, 9, 0, tzinfo=tz.UTC))
    return business_service
