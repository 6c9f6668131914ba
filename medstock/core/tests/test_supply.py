import pytest

from medstock.core import (
    WardInventory,
    AlreadyResolved,
    MedicationNotFound,
    PermissionDenied,
    RequestNotFound,
    ValidationError,
)
from medstock.core.workflow import LineDraft
from medstock.data.backends import MemoryStore
from medstock.data.interface import SUPPLY_REQUESTS


def test_supply_delivery_adds_each_line_once(ward, add_med, manager, pharmacist):
    add_med("m1", 3)
    add_med("m2", 7)
    request = ward.create_supply_request(
        manager, [LineDraft(medication_id="m1", quantity=10), LineDraft(medication_id="m2", quantity=10)], "Mashael"
    )
    assert request.status == "pending"
    assert request.id.startswith("REQ-")
    assert [i.name for i in request.items] == ["Drug m1", "Drug m2"]

    delivered = ward.confirm_supply_delivery(pharmacist, request.id, "Omar")
    assert delivered.status == "delivered"
    assert delivered.resolver_signature == "Omar"
    assert delivered.resolved_by == "PH-1"
    assert delivered.resolved_at is not None
    assert ward.get_medication("m1").current_stock == 13
    assert ward.get_medication("m2").current_stock == 17

    with pytest.raises(AlreadyResolved):
        ward.confirm_supply_delivery(pharmacist, request.id, "Omar")
    assert ward.get_medication("m1").current_stock == 13
    assert ward.get_medication("m2").current_stock == 17


def test_requests_are_newest_first(ward, add_med, manager):
    add_med("m1", 0)
    first = ward.create_supply_request(manager, [LineDraft(medication_id="m1", quantity=1)], "M")
    second = ward.create_supply_request(manager, [LineDraft(medication_id="m1", quantity=2)], "M")
    assert [r.id for r in ward.supply_requests()] == [second.id, first.id]
    assert ward.supply_requests("delivered") == []


@pytest.mark.parametrize(
    "lines, signature",
    [
        ([], "Mashael"),
        ([LineDraft(medication_id="m1", quantity=0)], "Mashael"),
        ([LineDraft(medication_id="m1", quantity=-5)], "Mashael"),
        ([LineDraft(medication_id="nope", quantity=1)], "Mashael"),
        ([LineDraft(medication_id="m1", quantity=1)], "   "),
        ([{"medication_id": "m1"}], "Mashael"),
        ([{"medication_id": "m1", "quantity": "lots"}], "Mashael"),
        ([object()], "Mashael"),
    ],
)
def test_invalid_requests_are_rejected(ward, add_med, manager, lines, signature):
    add_med("m1", 0)
    with pytest.raises(ValidationError):
        ward.create_supply_request(manager, lines, signature)
    assert ward.supply_requests() == []


def test_plain_dict_lines_are_accepted(ward, add_med, manager):
    add_med("m1", 0)
    request = ward.create_supply_request(manager, [{"medication_id": "m1", "quantity": 4}], "Mashael")
    assert [(i.medication_id, i.quantity) for i in request.items] == [("m1", 4)]


def test_resolution_requires_signature(ward, add_med, manager, pharmacist):
    add_med("m1", 0)
    request = ward.create_supply_request(manager, [LineDraft(medication_id="m1", quantity=4)], "M")
    with pytest.raises(ValidationError):
        ward.confirm_supply_delivery(pharmacist, request.id, "")
    assert ward.supply.get(request.id).is_pending
    assert ward.get_medication("m1").current_stock == 0


def test_capabilities_are_checked(ward, add_med, nurse, manager):
    add_med("m1", 0)
    with pytest.raises(PermissionDenied):
        ward.create_supply_request(nurse, [LineDraft(medication_id="m1", quantity=4)], "N")
    request = ward.create_supply_request(manager, [LineDraft(medication_id="m1", quantity=4)], "M")
    with pytest.raises(PermissionDenied):
        ward.confirm_supply_delivery(manager, request.id, "M")


def test_same_staff_member_cannot_sign_twice(ward, add_med, admin):
    add_med("m1", 0)
    request = ward.create_supply_request(admin, [LineDraft(medication_id="m1", quantity=4)], "Admin")
    with pytest.raises(ValidationError):
        ward.confirm_supply_delivery(admin, request.id, "Admin")
    assert ward.get_medication("m1").current_stock == 0


def test_unknown_request(ward, pharmacist):
    with pytest.raises(RequestNotFound):
        ward.confirm_supply_delivery(pharmacist, "REQ-000000", "Omar")


def test_missing_medication_aborts_whole_delivery(ward, add_med, manager, pharmacist):
    """No line is applied when any referenced medication has gone."""
    add_med("m1", 0)
    add_med("m2", 0)
    request = ward.create_supply_request(
        manager, [LineDraft(medication_id="m1", quantity=4), LineDraft(medication_id="m2", quantity=4)], "M"
    )
    del ward.state.medications["m2"]

    with pytest.raises(MedicationNotFound):
        ward.confirm_supply_delivery(pharmacist, request.id, "Omar")
    assert ward.get_medication("m1").current_stock == 0
    assert ward.supply.get(request.id).status == "pending"


class InterruptingStore(MemoryStore):
    """Fails the next non-empty save of `interrupt`, once."""

    interrupt = None

    def save(self, key, value):
        if key == self.interrupt and value is not None:
            self.interrupt = None
            raise OSError("write interrupted")
        super().save(key, value)


def test_interrupted_delivery_never_leaves_stock_without_status(clock, admin, manager, pharmacist):
    store = InterruptingStore()
    ward = WardInventory(store, clock=clock)
    ward.add_medication(admin, id="m1", name="Drug m1", current_stock=5)
    request = ward.create_supply_request(manager, [LineDraft(medication_id="m1", quantity=10)], "Mashael")

    store.interrupt = SUPPLY_REQUESTS
    with pytest.raises(OSError):
        ward.confirm_supply_delivery(pharmacist, request.id, "Omar")
    assert ward.get_medication("m1").current_stock == 5

    ward.create_supply_request(manager, [LineDraft(medication_id="m1", quantity=2)], "Mashael")

    restarted = WardInventory(store, clock=clock)
    assert restarted.get_medication("m1").current_stock == 5
    assert restarted.supply.get(request.id).status == "pending"

    delivered = restarted.confirm_supply_delivery(pharmacist, request.id, "Omar")
    assert delivered.status == "delivered"
    assert restarted.get_medication("m1").current_stock == 15
