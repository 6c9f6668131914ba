from datetime import date

import pydantic
import pytest

from medstock.config import set_config_for_test
from medstock.core import (
    WardInventory,
    CountCancelled,
    EstimatorFailure,
    InsufficientStock,
    MedicationExpired,
    MedicationNotFound,
    PermissionDenied,
    ValidationError,
)
from medstock.core.reconciliation import ManualCountSource, OpticalCountSource
from medstock.data.models import PillCountResult


class StubCapture:
    def __init__(self, image=b"jpeg-bytes"):
        self.image = image
        self.calls = 0

    def capture(self):
        self.calls += 1
        return self.image


class StubEstimator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.labels = []

    def estimate(self, image, expected_label):
        self.labels.append(expected_label)
        if self.error:
            raise self.error
        return self.result


def test_dispense_with_matching_count_is_verified(ward, add_med, nurse):
    """Pre-count 45, quantity 5, observed 40 -> verified."""
    add_med("m1", 45)
    result = ward.dispense(nurse, "m1", 5, "P-100", 40)

    assert result.entry.verified is True
    assert result.entry.pre_count == 45
    assert result.entry.post_count == 40
    assert result.entry.admin_by == "N-1"
    assert result.stock_after == 40
    assert ward.get_medication("m1").current_stock == 40
    assert ward.search_log(nurse) == [result.entry]


def test_dispense_mismatch_keeps_arithmetic_stock(ward, add_med, nurse):
    """Observed 38 is logged for audit; the ledger still holds 40."""
    add_med("m1", 45)
    result = ward.dispense(nurse, "m1", 5, "P-100", 38)

    assert result.entry.verified is False
    assert result.entry.post_count == 38
    assert result.reconciliation.discrepancy == -2
    assert ward.get_medication("m1").current_stock == 40
    assert len(ward.log) == 1


def test_insufficient_stock_is_a_no_op(ward, add_med, nurse):
    add_med("m1", 12)
    with pytest.raises(InsufficientStock):
        ward.dispense(nurse, "m1", 20, "P-100", 0)
    assert ward.get_medication("m1").current_stock == 12
    assert len(ward.log) == 0


def test_count_is_not_requested_when_validation_fails(ward, add_med, nurse):
    add_med("m1", 12)
    asked = []
    source = ManualCountSource(lambda request: asked.append(request) or 0)
    with pytest.raises(InsufficientStock):
        ward.dispense(nurse, "m1", 20, "P-100", source)
    assert asked == []


@pytest.mark.parametrize("quantity", [0, -1])
def test_non_positive_quantity_rejected(ward, add_med, nurse, quantity):
    add_med("m1", 12)
    with pytest.raises(ValidationError):
        ward.dispense(nurse, "m1", quantity, "P-100", 12)
    assert ward.get_medication("m1").current_stock == 12


def test_patient_id_required(ward, add_med, nurse):
    add_med("m1", 12)
    with pytest.raises(ValidationError):
        ward.dispense(nurse, "m1", 1, "  ", 11)


def test_unknown_medication(ward, nurse):
    with pytest.raises(MedicationNotFound):
        ward.dispense(nurse, "missing", 1, "P-100", 0)
    assert len(ward.log) == 0


def test_expired_medication_cannot_be_dispensed(ward, add_med, nurse):
    add_med("m1", 12, expiry_date=date(2026, 10, 1))
    with pytest.raises(MedicationExpired):
        ward.dispense(nurse, "m1", 1, "P-100", 11)
    assert ward.get_medication("m1").current_stock == 12


def test_max_dispense_quantity(store, clock, admin, nurse):
    set_config_for_test(store_backend="memory", seed_on_empty=False, max_dispense_quantity=3)
    ward = WardInventory(store, clock=clock)
    ward.add_medication(admin, id="m1", name="Drug", current_stock=10)
    with pytest.raises(ValidationError):
        ward.dispense(nurse, "m1", 4, "P-1", 6)
    assert ward.dispense(nurse, "m1", 3, "P-1", 7).entry.verified


def test_pharmacist_cannot_dispense(ward, add_med, pharmacist):
    add_med("m1", 12)
    with pytest.raises(PermissionDenied):
        ward.dispense(pharmacist, "m1", 1, "P-100", 11)


def test_cancelled_count_commits_nothing(ward, add_med, nurse):
    add_med("m1", 12)
    with pytest.raises(CountCancelled):
        ward.dispense(nurse, "m1", 2, "P-100", ManualCountSource(lambda request: None))
    assert ward.get_medication("m1").current_stock == 12
    assert len(ward.log) == 0


def test_optical_count_is_logged_with_advisory_confidence(ward, add_med, nurse):
    add_med("m1", 45, name="Paracetamol 500 mg TAB")
    estimator = StubEstimator(PillCountResult(count=40, confidence=0.2, identified_medication="Paracetamol"))
    source = OpticalCountSource(StubCapture(), estimator)

    result = ward.dispense(nurse, "m1", 5, "P-7", source)

    assert estimator.labels == ["Paracetamol 500 mg TAB"]
    assert result.entry.verified is True
    assert result.entry.count_source == "optical"
    assert result.entry.confidence == 0.2
    assert result.reconciliation.identified_medication == "Paracetamol"


def test_empty_capture_cancels(ward, add_med, nurse):
    add_med("m1", 45)
    source = OpticalCountSource(StubCapture(image=None), StubEstimator())
    with pytest.raises(CountCancelled):
        ward.dispense(nurse, "m1", 5, "P-7", source)
    assert ward.get_medication("m1").current_stock == 45


def test_estimator_failure_falls_back_to_manual_count(ward, add_med, nurse):
    add_med("m1", 45)
    source = OpticalCountSource(
        StubCapture(),
        StubEstimator(error=RuntimeError("network down")),
        fallback=ManualCountSource(lambda request: request.expected),
    )
    result = ward.dispense(nurse, "m1", 5, "P-7", source)
    assert result.entry.verified is True
    assert result.entry.count_source == "manual"
    assert ward.get_medication("m1").current_stock == 40


def test_estimator_failure_without_fallback_aborts(ward, add_med, nurse):
    add_med("m1", 45)
    source = OpticalCountSource(StubCapture(), StubEstimator(error=RuntimeError("timeout")))
    with pytest.raises(EstimatorFailure) as exc:
        ward.dispense(nurse, "m1", 5, "P-7", source)
    assert "timeout" in exc.value.reason
    assert ward.get_medication("m1").current_stock == 45
    assert len(ward.log) == 0


def test_log_entries_are_immutable(ward, add_med, nurse):
    add_med("m1", 45)
    entry = ward.dispense(nurse, "m1", 5, "P-100", 40).entry
    with pytest.raises(pydantic.ValidationError):
        entry.post_count = 41


def test_log_is_newest_first_and_searchable(ward, add_med, nurse):
    add_med("m1", 45, name="Lasix 40 mg TAB")
    add_med("m2", 45, name="Captopril 25 mg TAB")
    first = ward.dispense(nurse, "m1", 1, "P-100", 44).entry
    second = ward.dispense(nurse, "m2", 1, "P-200", 44).entry

    assert ward.search_log(nurse) == [second, first]
    assert ward.search_log(nurse, "lasix") == [first]
    assert ward.search_log(nurse, "p-200") == [second]


def test_audit_stock_does_not_mutate(ward, add_med, nurse):
    add_med("m1", 30)
    result = ward.audit_stock(nurse, "m1", 28)
    assert result.expected == 30
    assert result.verified is False
    assert ward.get_medication("m1").current_stock == 30
    assert len(ward.log) == 0
