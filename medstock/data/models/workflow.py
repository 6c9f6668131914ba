from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DisposalReason = Literal["expired", "surplus"]

PENDING = "pending"


class WorkflowItem(BaseModel):
    """A single line on a supply request."""
    model_config = ConfigDict(frozen=True)

    medication_id: str = Field(min_length=1, description="Medication reference")
    name: str = Field(description="Medication name at the time the request was drafted")
    quantity: int = Field(gt=0, description="Units requested")


class DisposalItem(WorkflowItem):
    """A single line on a disposal record."""
    reason: DisposalReason = Field(description="Why the stock is being retired")


class WorkflowRequest(BaseModel):
    """Shared shape of a two-signature batch action.

    Status moves one way, one step: ``pending`` to the subclass's resolved
    label. A resolved record is never reopened.
    """
    model_config = ConfigDict(frozen=True)

    RESOLVED_STATUS: ClassVar[str] = "resolved"

    id: str = Field(min_length=1, description="Request identifier")
    items: List[WorkflowItem] = Field(min_length=1, description="Ordered line items")
    created_at: datetime = Field(description="Creation timestamp")
    initiator_signature: str = Field(description="Attestation of the initiating party")
    initiated_by: Optional[str] = Field(default=None, description="Staff identifier of the initiating party")
    resolver_signature: Optional[str] = Field(default=None, description="Attestation of the resolving party")
    resolved_by: Optional[str] = Field(default=None, description="Staff identifier of the resolving party")
    resolved_at: Optional[datetime] = Field(default=None, description="Resolution timestamp")
    status: str = Field(default=PENDING, description="Workflow status")

    @field_validator("initiator_signature")
    @classmethod
    def _signature_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("initiator signature is required")
        return value

    @model_validator(mode="after")
    def _resolution_consistent(self) -> "WorkflowRequest":
        if self.status == self.RESOLVED_STATUS:
            if not (self.resolver_signature or "").strip() or self.resolved_at is None:
                raise ValueError("a resolved request needs a resolver signature and a resolution time")
        elif self.resolver_signature is not None or self.resolved_at is not None:
            raise ValueError("a pending request cannot carry resolution details")
        return self

    @classmethod
    def transitions(cls) -> Dict[str, FrozenSet[str]]:
        return {PENDING: frozenset({cls.RESOLVED_STATUS}), cls.RESOLVED_STATUS: frozenset()}

    @property
    def is_pending(self) -> bool:
        return self.status == PENDING

    def resolve(self, signature: str, resolved_at: datetime, resolved_by: Optional[str] = None):
        """Return the resolved copy of this request."""
        if self.RESOLVED_STATUS not in self.transitions()[self.status]:
            raise ValueError(f"cannot move from {self.status} to {self.RESOLVED_STATUS}")
        return type(self)(**{
            **dict(self),
            "status": self.RESOLVED_STATUS,
            "resolver_signature": signature.strip(),
            "resolved_by": resolved_by,
            "resolved_at": resolved_at,
        })


class SupplyRequest(WorkflowRequest):
    """Replenishment request: nurse manager requests, pharmacist delivers."""
    RESOLVED_STATUS: ClassVar[str] = "delivered"

    items: List[WorkflowItem] = Field(min_length=1, description="Ordered line items")
    status: Literal["pending", "delivered"] = Field(default=PENDING, description="Workflow status")


class DisposalRecord(WorkflowRequest):
    """Retirement record: nurse initiates, supervisor approves."""
    RESOLVED_STATUS: ClassVar[str] = "completed"

    items: List[DisposalItem] = Field(min_length=1, description="Ordered line items")
    status: Literal["pending", "completed"] = Field(default=PENDING, description="Workflow status")
