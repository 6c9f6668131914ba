from datetime import date, datetime, timezone

from medstock.core.dashboard import DashboardAggregator
from medstock.core.disposal import DisposalLine
from medstock.core.workflow import LineDraft
from medstock.data.models import AdministrationLogEntry, Medication

NOW = datetime(2026, 10, 19, tzinfo=timezone.utc)


def _med(mid, stock, threshold=5, category="General", expiry=date(2028, 1, 1)):
    return Medication(
        id=mid, name=mid, current_stock=stock, min_threshold=threshold,
        category=category, expiry_date=expiry, last_updated=NOW,
    )


def _entry(eid, patient, name, qty, ts, verified=True):
    return AdministrationLogEntry(
        id=eid, medication_id=name, medication_name=name, quantity_given=qty,
        pre_count=10, post_count=10 - qty if verified else 0, admin_by="N-1",
        patient_id=patient, timestamp=ts, verified=verified,
    )


def test_low_stock_uses_less_or_equal():
    agg = DashboardAggregator()
    meds = [_med("a", 4), _med("b", 5), _med("c", 6)]
    assert agg.low_stock_count(meds) == 1


def test_unset_threshold_defaults_to_five():
    agg = DashboardAggregator(default_threshold=5)
    meds = [_med("a", 5, threshold=None), _med("b", 6, threshold=None), _med("c", 0, threshold=0)]
    assert agg.low_stock_count(meds) == 2


def test_empty_inputs_produce_zeroes():
    summary = DashboardAggregator().summarize([], [], [], [], date(2026, 10, 19))
    assert summary.total_units == 0
    assert summary.medication_count == 0
    assert summary.low_stock_count == 0
    assert summary.expired_count == 0
    assert summary.verified_action_count == 0
    assert summary.top_categories == []
    assert DashboardAggregator.patient_summaries([]) == []


def test_category_breakdown_top_five_descending():
    meds = [
        _med("a", 10, category="Analgesics"),
        _med("b", 5, category="Analgesics"),
        _med("c", 30, category="Diuretics"),
        _med("d", 1, category="A"),
        _med("e", 2, category="B"),
        _med("f", 3, category="C"),
        _med("g", 4, category=""),
    ]
    breakdown = DashboardAggregator(top_n=5).category_breakdown(meds)
    assert [(c.category, c.units) for c in breakdown] == [
        ("Diuretics", 30),
        ("Analgesics", 15),
        ("Other", 4),
        ("C", 3),
        ("B", 2),
    ]


def test_expired_and_verified_counts():
    agg = DashboardAggregator()
    meds = [_med("a", 1, expiry=date(2026, 10, 18)), _med("b", 1, expiry=date(2026, 10, 19)), _med("c", 1, expiry=None)]
    assert agg.expired_count(meds, date(2026, 10, 19)) == 1
    entries = [_entry("1", "P1", "x", 1, NOW), _entry("2", "P1", "x", 1, NOW, verified=False)]
    assert agg.verified_action_count(entries) == 1


def test_patient_summaries_group_and_sort():
    entries = [
        _entry("1", "P1", "Lasix", 2, datetime(2026, 10, 1, tzinfo=timezone.utc)),
        _entry("2", "P2", "Captopril", 1, datetime(2026, 10, 5, tzinfo=timezone.utc)),
        _entry("3", "P1", "Paracetamol", 1, datetime(2026, 10, 3, tzinfo=timezone.utc)),
        _entry("4", "P1", "Lasix", 1, datetime(2026, 10, 2, tzinfo=timezone.utc)),
    ]
    summaries = DashboardAggregator.patient_summaries(entries)
    assert [s.patient_id for s in summaries] == ["P2", "P1"]
    p1 = summaries[1]
    assert p1.medications == ["Lasix", "Paracetamol"]
    assert p1.total_doses == 4
    assert p1.last_administered == datetime(2026, 10, 3, tzinfo=timezone.utc)


def test_ward_dashboard(ward, add_med, nurse, manager, supervisor):
    add_med("m1", 45, category="Analgesics")
    add_med("m2", 4, category="Diuretics", expiry_date=date(2026, 1, 1))
    ward.dispense(nurse, "m1", 5, "P-1", 40)
    ward.dispense(nurse, "m1", 5, "P-2", 30)
    ward.create_supply_request(manager, [LineDraft(medication_id="m2", quantity=10)], "M")
    ward.create_disposal(nurse, [DisposalLine(medication_id="m2", quantity=4, reason="expired")], "N")

    summary = ward.dashboard(supervisor)
    assert summary.total_units == 34
    assert summary.medication_count == 2
    assert summary.low_stock_count == 1
    assert summary.expired_count == 1
    assert summary.verified_action_count == 1
    assert summary.mismatch_count == 1
    assert summary.pending_supply_count == 1
    assert summary.pending_disposal_count == 1
    assert summary.top_categories[0].category == "Analgesics"
    assert [p.patient_id for p in ward.patient_summaries(nurse)] == ["P-1", "P-2"]
