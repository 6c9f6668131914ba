from datetime import date, datetime, timezone

import pytest

from medstock.config import set_config_for_test, get_config
from medstock.core import Actor, Role, WardInventory
from medstock.data.backends import MemoryStore

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def ward_config():
    set_config_for_test(store_backend="memory", seed_on_empty=False, log_level="WARNING")
    yield get_config()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ward(store, clock):
    return WardInventory(store, clock=clock)


@pytest.fixture
def admin():
    return Actor(staff_id="A-1", name="Admin", role=Role.ADMIN)


@pytest.fixture
def nurse():
    return Actor(staff_id="N-1", name="Sarah Chen", role=Role.NURSE)


@pytest.fixture
def manager():
    return Actor(staff_id="NM-1", name="Mashael", role=Role.NURSE_MANAGER)


@pytest.fixture
def pharmacist():
    return Actor(staff_id="PH-1", name="Omar", role=Role.PHARMACIST)


@pytest.fixture
def supervisor():
    return Actor(staff_id="SV-1", name="Layla", role=Role.SUPERVISOR)


@pytest.fixture
def add_med(ward, admin):
    def _add(med_id, stock, **fields):
        fields.setdefault("name", f"Drug {med_id}")
        fields.setdefault("category", "General")
        fields.setdefault("expiry_date", date(2028, 1, 1))
        return ward.add_medication(admin, id=med_id, current_stock=stock, **fields)
    return _add
