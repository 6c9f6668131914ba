from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CategoryTotal(BaseModel):
    """Stock summed over one category."""
    category: str = Field(description="Therapeutic category")
    units: int = Field(description="SUM(current_stock)")


class DashboardSummary(BaseModel):
    """Read-only projection of the ledger and log, recomputed on every read."""
    total_units: int            # SUM(current_stock)
    medication_count: int       # number of stock-keeping units
    low_stock_count: int        # current_stock <= threshold
    expired_count: int          # expiry_date < today
    verified_action_count: int  # log entries with verified == True
    mismatch_count: int         # log entries with verified == False
    pending_supply_count: int
    pending_disposal_count: int
    top_categories: List[CategoryTotal] = Field(default_factory=list)


class PatientSummary(BaseModel):
    """Administration history for one patient."""
    patient_id: str = Field(description="Patient identifier")
    medications: List[str] = Field(description="Distinct medication names given")
    total_doses: int = Field(description="SUM(quantity_given)")
    last_administered: Optional[datetime] = Field(default=None, description="Most recent administration")
