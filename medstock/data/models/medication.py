from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MedicationKind = Literal["drug", "vaccine_adult", "vaccine_child"]


class Medication(BaseModel):
    """One stock-keeping unit held by the ward.

    Records are immutable; edits produce a new record with the same id.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, description="Unique, immutable medication identifier")
    name: str = Field(min_length=1, description="Medication name")
    dosage: str = Field(default="", description="Dosage descriptor")
    ref_number: str = Field(default="", description="Reference code printed on the pack")
    current_stock: int = Field(default=0, ge=0, description="Units currently on hand")
    min_threshold: Optional[int] = Field(default=None, ge=0, description="Low-stock threshold; unset uses the configured default")
    category: str = Field(default="", description="Therapeutic category")
    expiry_date: Optional[date] = Field(default=None, description="Expiry date of the stock on hand")
    last_updated: datetime = Field(description="Timestamp of the last change")
    kind: MedicationKind = Field(default="drug", description="General drug, adult vaccine or pediatric vaccine")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    def is_expired(self, today: date) -> bool:
        """True when the expiry date is strictly before ``today``."""
        return self.expiry_date is not None and self.expiry_date < today

    def threshold(self, default: int = 5) -> int:
        return self.min_threshold if self.min_threshold is not None else default

    def is_low_stock(self, default_threshold: int = 5) -> bool:
        return self.current_stock <= self.threshold(default_threshold)
