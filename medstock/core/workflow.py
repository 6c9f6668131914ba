from __future__ import annotations

import uuid
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .clock import Clock, utc_now
from .errors import AlreadyResolved, RequestNotFound, ValidationError
from .ledger import DeltaSource, StockLedger
from .roles import Actor, Capability, require
from ..data.models import WorkflowRequest
from ..data.state import WardState
from ..logging import get_logger

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=WorkflowRequest)


class LineDraft(BaseModel):
    """A line as entered on a request form, before validation."""
    medication_id: str = Field(description="Medication reference")
    quantity: int = Field(description="Units")


def _require_signature(signature: Optional[str], party: str) -> str:
    signature = (signature or "").strip()
    if not signature:
        raise ValidationError(f"{party} signature is required")
    return signature


def first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    where = ".".join(str(p) for p in err.get("loc", ()))
    return f"{where}: {err['msg']}" if where else err["msg"]


class TwoPartyWorkflow(Generic[RecordT]):
    """
    Shared create/resolve machinery for the dual-signature workflows.

    Subclasses set the record type, the capabilities of each party, the
    ledger direction and the id prefix. Resolution applies every line to the
    ledger and flips the status in one transaction.
    """

    record_type: Type[RecordT]
    line_type: Type[LineDraft] = LineDraft
    collection: str
    id_prefix: str
    create_capability: Capability
    resolve_capability: Capability
    delta_sign: int
    delta_source: DeltaSource
    initiator_label: str = "Initiator"
    resolver_label: str = "Resolver"

    def __init__(self, state: WardState, ledger: StockLedger, clock: Clock = utc_now) -> None:
        self._state = state
        self._ledger = ledger
        self._clock = clock

    # ---------- storage ----------

    def _records(self) -> List[RecordT]:
        return getattr(self._state, self.collection)

    def _new_id(self) -> str:
        return f"{self.id_prefix}-{uuid.uuid4().hex[:6].upper()}"

    def get(self, request_id: str) -> RecordT:
        for record in self._records():
            if record.id == request_id:
                return record
        raise RequestNotFound(request_id)

    def list(self, status: Optional[str] = None) -> List[RecordT]:
        return [r for r in self._records() if status is None or r.status == status]

    def pending(self) -> List[RecordT]:
        return [r for r in self._records() if r.is_pending]

    # ---------- create ----------

    def _item_payload(self, line: LineDraft) -> Dict[str, Any]:
        return {"medication_id": line.medication_id, "quantity": line.quantity}

    def create(self, actor: Actor, lines: Sequence[Any], signature: str) -> RecordT:
        require(actor, self.create_capability)
        signature = _require_signature(signature, self.initiator_label)
        if not lines:
            raise ValidationError("At least one item is required")

        items = []
        for raw in lines:
            try:
                line = self.line_type.model_validate(raw, from_attributes=True)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid line: {first_error(e)}") from e
            payload = self._item_payload(line)
            med = self._ledger.find(payload["medication_id"])
            if med is None:
                raise ValidationError(f"Unknown medication {payload['medication_id']!r}")
            items.append({**payload, "name": med.name})

        try:
            record = self.record_type(
                id=self._new_id(),
                items=items,
                created_at=self._clock(),
                initiator_signature=signature,
                initiated_by=actor.staff_id,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid request: {first_error(e)}") from e

        with self._state.transaction():
            self._records().insert(0, record)
            self._state.mark_dirty(self.collection)

        logger.info(f"{actor.staff_id} created {record.id} with {len(record.items)} item(s)")
        return record

    # ---------- resolve ----------

    def resolve(self, actor: Actor, request_id: str, signature: str) -> RecordT:
        require(actor, self.resolve_capability)
        signature = _require_signature(signature, self.resolver_label)

        medication_ids = [item.medication_id for item in self.get(request_id).items]
        with self._ledger.lock(*medication_ids), self._state.transaction():
            record = self.get(request_id)
            if not record.is_pending:
                raise AlreadyResolved(record.id, record.status)
            if record.initiated_by and record.initiated_by == actor.staff_id:
                raise ValidationError("The second signature must come from a different staff member")

            # Every referenced medication must exist before any line is applied
            for item in record.items:
                self._ledger.get(item.medication_id)
            for item in record.items:
                self._ledger.apply_delta(item.medication_id, self.delta_sign * item.quantity, self.delta_source)

            resolved = record.resolve(signature, self._clock(), resolved_by=actor.staff_id)
            records = self._records()
            records[records.index(record)] = resolved
            self._state.mark_dirty(self.collection)

        logger.info(f"{actor.staff_id} resolved {resolved.id} as {resolved.status}")
        return resolved
