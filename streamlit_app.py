import pandas as pd
import streamlit as st

from medstock.config import get_config
from medstock.core import Actor, InventoryError, Role, WardInventory
from medstock.core.disposal import DisposalLine
from medstock.core.reconciliation import FixedCount
from medstock.core.workflow import LineDraft

st.set_page_config(page_title="Ward Medication Stock", layout="wide")

# -----------------------------------------------------------------------------
# Service (one per browser session; state is persisted by the configured store)
# -----------------------------------------------------------------------------
config = get_config()
if "ward" not in st.session_state:
    st.session_state["ward"] = WardInventory.from_config(config)
ward: WardInventory = st.session_state["ward"]

# -----------------------------------------------------------------------------
# Sidebar: who is acting and which screen
# -----------------------------------------------------------------------------
st.sidebar.header("Staff")
staff_id = st.sidebar.text_input("Staff ID", value="N-1")
staff_name = st.sidebar.text_input("Name", value="Duty nurse")
role = st.sidebar.selectbox("Role", [r.value for r in Role])
actor = Actor(staff_id=staff_id or "anonymous", name=staff_name, role=Role(role))

view = st.sidebar.radio(
    "Screen",
    ["Dashboard", "Inventory", "Administer", "History", "Patients", "Pharmacy supply", "Disposal"],
)


def run(action, success: str):
    """Call a ward operation and surface its error as a short message."""
    try:
        result = action()
    except InventoryError as e:
        st.error(f"{e.message} [{e.code}]")
        return None
    st.success(success)
    return result


def read(action):
    """Like run, for reads: no success banner."""
    try:
        return action()
    except InventoryError as e:
        st.error(f"{e.message} [{e.code}]")
        return None


def frame(records) -> pd.DataFrame:
    return pd.DataFrame([r.model_dump() for r in records])


# -----------------------------------------------------------------------------
# Dashboard
# -----------------------------------------------------------------------------
if view == "Dashboard":
    summary = read(lambda: ward.dashboard(actor))
    if summary is None:
        st.stop()
    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Total units", f"{summary.total_units:,}")
    c2.metric("Medications", summary.medication_count)
    c3.metric("Low stock", summary.low_stock_count)
    c4.metric("Expired", summary.expired_count)
    c5.metric("Verified actions", summary.verified_action_count)

    st.markdown("### Stock by category (top 5)")
    if summary.top_categories:
        st.bar_chart(frame(summary.top_categories).set_index("category")["units"])
    st.caption(
        f"{summary.pending_supply_count} supply request(s) and "
        f"{summary.pending_disposal_count} disposal record(s) awaiting a second signature; "
        f"{summary.mismatch_count} unverified administration(s)."
    )

# -----------------------------------------------------------------------------
# Inventory
# -----------------------------------------------------------------------------
elif view == "Inventory":
    kind = st.selectbox("Kind", ["drug", "vaccine_adult", "vaccine_child"])
    search = st.text_input("Search name, reference or category")
    meds = ward.list_medications(kind=kind, search=search)
    st.dataframe(frame(meds), use_container_width=True)

    with st.expander("Add medication"):
        with st.form("add_med"):
            name = st.text_input("Name")
            dosage = st.text_input("Dosage")
            ref_number = st.text_input("Reference")
            category = st.text_input("Category")
            stock = st.number_input("Opening stock", min_value=0, step=1)
            threshold = st.number_input("Minimum threshold", min_value=0, value=config.default_min_threshold, step=1)
            expiry = st.date_input("Expiry date")
            if st.form_submit_button("Save"):
                run(lambda: ward.add_medication(
                    actor, name=name, dosage=dosage, ref_number=ref_number, category=category,
                    current_stock=int(stock), min_threshold=int(threshold), expiry_date=expiry, kind=kind,
                ), "Medication saved")

    if meds:
        with st.expander("Stock audit"):
            target = st.selectbox("Medication", meds, format_func=lambda m: f"{m.name} ({m.current_stock})")
            counted = st.number_input("Counted on shelf", min_value=0, step=1)
            if st.button("Reconcile"):
                result = run(lambda: ward.audit_stock(actor, target.id, FixedCount(int(counted))), "Audit recorded")
                if result is not None and result.mismatched:
                    st.warning(f"Shelf count differs from ledger by {result.discrepancy:+d}")

# -----------------------------------------------------------------------------
# Administer
# -----------------------------------------------------------------------------
elif view == "Administer":
    eligible = ward.eligible_for_dispense()
    if not eligible:
        st.info("No medication is in stock and in date.")
    else:
        with st.form("dispense"):
            med = st.selectbox("Medication", eligible, format_func=lambda m: f"{m.name} ({m.current_stock} on hand)")
            quantity = st.number_input("Quantity", min_value=1, step=1)
            patient_id = st.text_input("Patient ID")
            observed = st.number_input("Counted after dispensing", min_value=0, step=1)
            if st.form_submit_button("Record administration"):
                result = run(
                    lambda: ward.dispense(actor, med.id, int(quantity), patient_id, FixedCount(int(observed))),
                    "Administration recorded",
                )
                if result is not None and not result.entry.verified:
                    st.warning(
                        f"Count mismatch: expected {result.reconciliation.expected}, "
                        f"observed {result.reconciliation.observed}. Flagged for review."
                    )

# -----------------------------------------------------------------------------
# History / patients
# -----------------------------------------------------------------------------
elif view == "History":
    term = st.text_input("Search medication or patient")
    entries = read(lambda: ward.search_log(actor, term))
    if entries is not None:
        st.dataframe(frame(entries), use_container_width=True)

elif view == "Patients":
    summaries = read(lambda: ward.patient_summaries(actor))
    if summaries is not None:
        st.dataframe(frame(summaries), use_container_width=True)

# -----------------------------------------------------------------------------
# Pharmacy supply
# -----------------------------------------------------------------------------
elif view == "Pharmacy supply":
    meds = ward.list_medications()
    with st.form("supply"):
        picked = st.multiselect("Medications", meds, format_func=lambda m: m.name)
        quantity = st.number_input("Quantity per item", min_value=1, step=1)
        signature = st.text_input("Nurse manager signature")
        if st.form_submit_button("Send request"):
            lines = [LineDraft(medication_id=m.id, quantity=int(quantity)) for m in picked]
            run(lambda: ward.create_supply_request(actor, lines, signature), "Request created")

    for req in ward.supply_requests():
        with st.expander(f"{req.id} - {req.status}"):
            st.dataframe(frame(req.items), use_container_width=True)
            if req.is_pending:
                sig = st.text_input("Pharmacist signature", key=f"sig-{req.id}")
                if st.button("Confirm delivery", key=f"ok-{req.id}"):
                    run(lambda: ward.confirm_supply_delivery(actor, req.id, sig), "Stock received")

# -----------------------------------------------------------------------------
# Disposal
# -----------------------------------------------------------------------------
elif view == "Disposal":
    draft = st.session_state.setdefault("disposal_draft", [])
    b1, b2, b3 = st.columns(3)
    if b1.button("Add all expired"):
        st.session_state["disposal_draft"] = draft = ward.prefill_expired(draft)
    if b2.button("Add all surplus"):
        st.session_state["disposal_draft"] = draft = ward.prefill_surplus(draft)
    if b3.button("Clear"):
        st.session_state["disposal_draft"] = draft = []

    if draft:
        edited = st.data_editor(frame(draft), use_container_width=True, key="draft_editor")
        signature = st.text_input("Nurse signature")
        if st.button("Create disposal record"):
            lines = [DisposalLine(**row) for row in edited.to_dict(orient="records")]
            if run(lambda: ward.create_disposal(actor, lines, signature), "Disposal record created"):
                st.session_state["disposal_draft"] = []

    for rec in ward.disposal_records():
        with st.expander(f"{rec.id} - {rec.status}"):
            st.dataframe(frame(rec.items), use_container_width=True)
            if rec.is_pending:
                sig = st.text_input("Supervisor signature", key=f"sig-{rec.id}")
                if st.button("Complete disposal", key=f"ok-{rec.id}"):
                    run(lambda: ward.complete_disposal(actor, rec.id, sig), "Disposal completed")
