from datetime import datetime, timezone

import pytest

from courier_ledger.core.config import Settings
from courier_ledger.database import build_engine
from courier_ledger.main import build_ledger
from courier_ledger.models.status import OrderStatus
from courier_ledger.schemas.directory import DirectoryEntry
from courier_ledger.schemas.order import OrderCreate

FIXED_NOW = datetime(2024, 7, 22, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def ledger(settings):
    # fresh private in-memory database per test
    ledger = build_ledger(settings=settings, engine=build_engine("sqlite://"))
    ledger.settlement.clock = lambda: FIXED_NOW
    ledger.returns.clock = lambda: FIXED_NOW
    return ledger


@pytest.fixture
def session(ledger):
    with ledger.session() as session:
        yield session


@pytest.fixture
def make_order(ledger, session):
    def _make(**overrides):
        data = {
            "recipient": "Test User",
            "phone": "0791234567",
            "merchant": "Merchant A",
            "city": "عمان",
            "region": "الصويفية",
            "cod": 50,
            "delivery_fee": 2,
        }
        data.update(overrides)
        return ledger.orders.create_order(session, OrderCreate(**data))

    return _make


@pytest.fixture
def delivered_by(make_order):
    """Create a DELIVERED order carried by `driver`."""

    def _make(driver: str, cod: float, driver_fee: float = 2.0, **overrides):
        return make_order(
            driver=driver,
            cod=cod,
            driver_fee=driver_fee,
            status=OrderStatus.DELIVERED,
            **overrides,
        )

    return _make


@pytest.fixture
def directory():
    return [
        DirectoryEntry(id="U1", name="Ali", role="driver"),
        DirectoryEntry(id="U2", name="Abu Alabd", role="Driver"),
        DirectoryEntry(id="U3", name="Sara", role="merchant", store_name="Merchant A"),
        DirectoryEntry(id="U4", name="Admin", role="admin"),
    ]
