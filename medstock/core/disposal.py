from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Sequence

from pydantic import Field

from .ledger import DeltaSource
from .roles import Capability
from .workflow import LineDraft, TwoPartyWorkflow
from ..data.interface import DISPOSAL_RECORDS
from ..data.models import DisposalReason, DisposalRecord, Medication


class DisposalLine(LineDraft):
    """A disposal form line. Pre-filled lines may carry zero until edited."""
    reason: DisposalReason = Field(default="surplus", description="Why the stock is being retired")


def _merge(draft: Sequence[DisposalLine], additions: List[DisposalLine]) -> List[DisposalLine]:
    present = {line.medication_id for line in draft}
    return list(draft) + [line for line in additions if line.medication_id not in present]


def add_all_expired(draft: Sequence[DisposalLine], medications: Sequence[Medication], today: date) -> List[DisposalLine]:
    """Pre-fill every medication expired before `today` at its full stock.

    Medications already on the draft are left as they are.
    """
    additions = [
        DisposalLine(medication_id=m.id, quantity=m.current_stock, reason="expired")
        for m in medications
        if m.is_expired(today)
    ]
    return _merge(draft, additions)


def add_all_surplus(draft: Sequence[DisposalLine], medications: Sequence[Medication]) -> List[DisposalLine]:
    """Pre-fill every medication with stock on hand at its full stock."""
    additions = [
        DisposalLine(medication_id=m.id, quantity=m.current_stock, reason="surplus")
        for m in medications
        if m.current_stock > 0
    ]
    return _merge(draft, additions)


class DisposalWorkflow(TwoPartyWorkflow[DisposalRecord]):
    """Retirement of expired or surplus stock: pending -> completed.

    Completion removes every line's quantity from the ledger, floored at
    zero: stock may have moved since the draft was built, and the paperwork
    must still close.
    """

    record_type = DisposalRecord
    line_type = DisposalLine
    collection = DISPOSAL_RECORDS
    id_prefix = "DISP"
    create_capability = Capability.INITIATE_DISPOSAL
    resolve_capability = Capability.APPROVE_DISPOSAL
    delta_sign = -1
    delta_source = DeltaSource.DISPOSAL
    initiator_label = "Nurse"
    resolver_label = "Supervisor"

    def _item_payload(self, line: DisposalLine) -> Dict[str, Any]:
        payload = super()._item_payload(line)
        payload["reason"] = line.reason
        return payload
