from __future__ import annotations

import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .clock import Clock, utc_now
from .errors import InsufficientStock, MedicationExpired, ValidationError
from .ledger import DeltaSource, StockLedger
from .reconciliation import CountRequest, CountSource, ReconciliationEngine, ReconciliationResult
from .roles import Actor, Capability, require
from ..data.interface import ADMINISTRATION_LOG
from ..data.models import AdministrationLogEntry
from ..data.state import WardState
from ..logging import get_logger

logger = get_logger(__name__)


class AdministrationLog:
    """Append-only view over the administration log (newest first)."""

    def __init__(self, state: WardState) -> None:
        self._state = state

    def append(self, entry: AdministrationLogEntry) -> None:
        self._state.administration_log.insert(0, entry)
        self._state.mark_dirty(ADMINISTRATION_LOG)

    def entries(self) -> List[AdministrationLogEntry]:
        return list(self._state.administration_log)

    def __len__(self) -> int:
        return len(self._state.administration_log)

    def search(self, term: str = "") -> List[AdministrationLogEntry]:
        """Case-insensitive match on medication name or patient id."""
        needle = (term or "").strip().lower()
        if not needle:
            return self.entries()
        return [
            e for e in self._state.administration_log
            if needle in e.medication_name.lower() or needle in e.patient_id.lower()
        ]


class DispenseResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry: AdministrationLogEntry
    reconciliation: ReconciliationResult
    stock_after: int


class AdministrationService:
    """Dispense-to-patient with reconciliation against an observed count."""

    def __init__(
        self,
        state: WardState,
        ledger: StockLedger,
        log: AdministrationLog,
        engine: Optional[ReconciliationEngine] = None,
        clock: Clock = utc_now,
        max_quantity: Optional[int] = None,
    ) -> None:
        self._state = state
        self._ledger = ledger
        self._log = log
        self._engine = engine or ReconciliationEngine()
        self._clock = clock
        self._max_quantity = max_quantity

    def _validate_request(self, quantity: int, patient_id: str) -> str:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Quantity must be a positive whole number")
        if self._max_quantity is not None and quantity > self._max_quantity:
            raise ValidationError(f"Quantity may not exceed {self._max_quantity} per administration")
        patient_id = (patient_id or "").strip()
        if not patient_id:
            raise ValidationError("Patient ID is required")
        return patient_id

    def dispense(
        self,
        actor: Actor,
        medication_id: str,
        quantity: int,
        patient_id: str,
        count_source: CountSource,
        notes: Optional[str] = None,
    ) -> DispenseResult:
        """Administer `quantity` units and record the reconciled log entry.

        The medication's lock is held from validation through commit, so the
        pre-count cannot move while the observed count is being taken. If
        anything fails (validation, stock, cancelled or failed count) no log
        entry is written and stock is unchanged.
        """
        require(actor, Capability.DISPENSE)
        patient_id = self._validate_request(quantity, patient_id)

        with self._ledger.lock(medication_id):
            med = self._ledger.get(medication_id)
            if med.is_expired(self._clock().date()):
                raise MedicationExpired(med.id, med.name)
            if med.current_stock < quantity:
                raise InsufficientStock(med.id, med.current_stock, quantity)

            pre_count = med.current_stock
            expected = pre_count - quantity

            # Suspension point: waits on capture/estimator/operator
            result = self._engine.run(CountRequest(med.id, med.name, expected), count_source)

            with self._state.transaction():
                try:
                    entry = AdministrationLogEntry(
                        id=uuid.uuid4().hex[:9],
                        medication_id=med.id,
                        medication_name=med.name,
                        quantity_given=quantity,
                        pre_count=pre_count,
                        post_count=result.observed,
                        admin_by=actor.staff_id,
                        patient_id=patient_id,
                        timestamp=self._clock(),
                        verified=result.verified,
                        count_source=result.source,
                        confidence=result.confidence,
                        notes=notes,
                    )
                except PydanticValidationError as e:
                    raise ValidationError(f"Invalid administration record: {e.errors()[0]['msg']}") from e

                # The ledger keeps the arithmetic count; the log keeps what was observed
                stock_after = self._ledger.apply_delta(med.id, -quantity, DeltaSource.ADMINISTRATION)
                self._log.append(entry)

        logger.info(
            f"{actor.staff_id} gave {quantity} x {med.name} to {patient_id}; "
            f"stock {pre_count} -> {stock_after}, verified={entry.verified}"
        )
        return DispenseResult(entry=entry, reconciliation=result, stock_after=stock_after)

    def audit_stock(self, actor: Actor, medication_id: str, count_source: CountSource) -> ReconciliationResult:
        """Count what is on the shelf against the ledger. Nothing is mutated."""
        require(actor, Capability.AUDIT_STOCK)
        with self._ledger.lock(medication_id):
            med = self._ledger.get(medication_id)
            result = self._engine.run(CountRequest(med.id, med.name, med.current_stock), count_source)
        logger.info(f"Stock audit of {med.id} by {actor.staff_id}: verified={result.verified}")
        return result
