from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PillCountResult(BaseModel):
    """Output of the optical pill-count estimator. Evidence only, never ledger truth."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    count: int = Field(ge=0, description="Number of units counted in the image")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence of the count and identification")
    identified_medication: Optional[str] = Field(default=None, alias="identifiedMedication", description="Medication identified from its appearance")
    warning: Optional[str] = Field(default=None, description="Set when the units do not match the expected medication")
