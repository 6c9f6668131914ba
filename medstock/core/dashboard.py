from __future__ import annotations

from datetime import date
from typing import List, Sequence

import pandas as pd

from ..data.models import (
    AdministrationLogEntry,
    CategoryTotal,
    DashboardSummary,
    DisposalRecord,
    Medication,
    PatientSummary,
    SupplyRequest,
)

UNCATEGORISED = "Other"

_MED_COLUMNS = ["id", "category", "current_stock", "min_threshold", "expiry_date"]
_LOG_COLUMNS = ["patient_id", "medication_name", "quantity_given", "timestamp", "verified"]


def medications_frame(medications: Sequence[Medication]) -> pd.DataFrame:
    if not medications:
        return pd.DataFrame(columns=_MED_COLUMNS)
    return pd.DataFrame([m.model_dump(include=set(_MED_COLUMNS)) for m in medications], columns=_MED_COLUMNS)


def log_frame(entries: Sequence[AdministrationLogEntry]) -> pd.DataFrame:
    if not entries:
        return pd.DataFrame(columns=_LOG_COLUMNS)
    return pd.DataFrame([e.model_dump(include=set(_LOG_COLUMNS)) for e in entries], columns=_LOG_COLUMNS)


class DashboardAggregator:
    """
    Pure projections over a snapshot of the ledger, log and workflow stores.
    Nothing is cached: every call recomputes from what it is given.
    """

    def __init__(self, default_threshold: int = 5, top_n: int = 5) -> None:
        self.default_threshold = default_threshold
        self.top_n = top_n

    def total_units(self, medications: Sequence[Medication]) -> int:
        df = medications_frame(medications)
        return int(df["current_stock"].sum()) if not df.empty else 0

    def low_stock_count(self, medications: Sequence[Medication]) -> int:
        df = medications_frame(medications)
        if df.empty:
            return 0
        threshold = pd.to_numeric(df["min_threshold"]).fillna(self.default_threshold)
        return int((df["current_stock"] <= threshold).sum())

    def expired_count(self, medications: Sequence[Medication], today: date) -> int:
        return sum(1 for m in medications if m.is_expired(today))

    def verified_action_count(self, entries: Sequence[AdministrationLogEntry]) -> int:
        return sum(1 for e in entries if e.verified)

    def category_breakdown(self, medications: Sequence[Medication]) -> List[CategoryTotal]:
        """Stock summed by category, largest first, top N."""
        df = medications_frame(medications)
        if df.empty:
            return []
        df["category"] = df["category"].replace("", UNCATEGORISED)
        agg = (
            df.groupby("category", as_index=False)["current_stock"]
              .sum()
              .sort_values(["current_stock", "category"], ascending=[False, True])
              .head(int(self.top_n))
        )
        return [CategoryTotal(category=row.category, units=int(row.current_stock)) for row in agg.itertuples()]

    def summarize(
        self,
        medications: Sequence[Medication],
        entries: Sequence[AdministrationLogEntry],
        supply_requests: Sequence[SupplyRequest],
        disposal_records: Sequence[DisposalRecord],
        today: date,
    ) -> DashboardSummary:
        verified = self.verified_action_count(entries)
        return DashboardSummary(
            total_units=self.total_units(medications),
            medication_count=len(medications),
            low_stock_count=self.low_stock_count(medications),
            expired_count=self.expired_count(medications, today),
            verified_action_count=verified,
            mismatch_count=len(entries) - verified,
            pending_supply_count=sum(1 for r in supply_requests if r.is_pending),
            pending_disposal_count=sum(1 for r in disposal_records if r.is_pending),
            top_categories=self.category_breakdown(medications),
        )

    @staticmethod
    def patient_summaries(entries: Sequence[AdministrationLogEntry]) -> List[PatientSummary]:
        """Per-patient history, most recently treated first."""
        df = log_frame(entries)
        if df.empty:
            return []
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
        grouped = (
            df.groupby("patient_id")
              .agg(
                  total_doses=("quantity_given", "sum"),
                  last_administered=("timestamp", "max"),
              )
              .reset_index()
              .sort_values(["last_administered", "patient_id"], ascending=[False, True])
        )
        names = df.groupby("patient_id")["medication_name"].unique()
        return [
            PatientSummary(
                patient_id=row.patient_id,
                medications=sorted(names[row.patient_id]),
                total_doses=int(row.total_doses),
                last_administered=row.last_administered.to_pydatetime(),
            )
            for row in grouped.itertuples()
        ]
