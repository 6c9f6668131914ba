from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

CountSourceKind = Literal["optical", "manual"]


class AdministrationLogEntry(BaseModel):
    """Immutable record of a single dispense-to-patient event."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Log entry identifier")
    medication_id: str = Field(min_length=1, description="Medication reference")
    medication_name: str = Field(description="Medication name at the time of the event")
    quantity_given: int = Field(gt=0, description="Units administered")
    pre_count: int = Field(ge=0, description="Ledger stock before the event")
    post_count: int = Field(ge=0, description="Observed stock after the event")
    admin_by: str = Field(min_length=1, description="Administering staff identifier")
    patient_id: str = Field(min_length=1, description="Patient identifier")
    timestamp: datetime = Field(description="Time of administration")
    verified: bool = Field(description="Observed count equals pre-count minus quantity given")
    count_source: CountSourceKind = Field(default="manual", description="Where the observed count came from")
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Advisory estimator confidence")
    notes: Optional[str] = Field(default=None, description="Free-text notes")

    @model_validator(mode="after")
    def _check_counts(self) -> "AdministrationLogEntry":
        if self.quantity_given > self.pre_count:
            raise ValueError("quantity_given cannot exceed pre_count")
        if self.verified != (self.post_count == self.expected_post_count):
            raise ValueError("verified must reflect whether post_count matches the expected count")
        return self

    @property
    def expected_post_count(self) -> int:
        return self.pre_count - self.quantity_given

    @property
    def discrepancy(self) -> int:
        return self.post_count - self.expected_post_count
