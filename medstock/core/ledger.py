from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from datetime import date
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .clock import Clock, utc_now
from .errors import InsufficientStock, MedicationNotFound
from ..data.interface import MEDICATIONS
from ..data.models import Medication, MedicationKind
from ..data.state import WardState
from ..logging import get_logger

logger = get_logger(__name__)


class DeltaSource(str, Enum):
    """Which writer is changing stock. Only disposal clamps at zero."""
    ADMINISTRATION = "administration"
    SUPPLY = "supply"
    DISPOSAL = "disposal"


class StockLedger:
    """
    Canonical medication -> current stock table.

    The ledger does not write audit records. Callers pair every successful
    delta with exactly one log entry or resolved workflow record, inside a
    `WardState.transaction()`.

    Lock order is per-medication locks first, then the state lock.
    """

    def __init__(self, state: WardState, clock: Clock = utc_now) -> None:
        self._state = state
        self._clock = clock
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ---------- locking ----------

    def _lock_for(self, medication_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(medication_id, threading.RLock())

    @contextmanager
    def lock(self, *medication_ids: str) -> Iterator[None]:
        """Hold the write lock of every given medication, acquired in sorted order."""
        with ExitStack() as stack:
            for mid in sorted(set(medication_ids)):
                stack.enter_context(self._lock_for(mid))
            yield

    # ---------- reads ----------

    def find(self, medication_id: str) -> Optional[Medication]:
        return self._state.medications.get(medication_id)

    def get(self, medication_id: str) -> Medication:
        med = self.find(medication_id)
        if med is None:
            raise MedicationNotFound(medication_id)
        return med

    def all(self, kind: Optional[MedicationKind] = None) -> List[Medication]:
        meds = list(self._state.medications.values())
        if kind is not None:
            meds = [m for m in meds if m.kind == kind]
        return meds

    def search(self, term: str = "", kind: Optional[MedicationKind] = None) -> List[Medication]:
        """Case-insensitive match on name, reference code or category."""
        needle = (term or "").strip().lower()
        return [
            m for m in self.all(kind)
            if not needle
            or needle in m.name.lower()
            or needle in m.ref_number.lower()
            or needle in m.category.lower()
        ]

    def eligible_for_dispense(self, today: date, kind: Optional[MedicationKind] = None) -> List[Medication]:
        return [m for m in self.all(kind) if m.current_stock > 0 and not m.is_expired(today)]

    # ---------- writes ----------

    def apply_delta(self, medication_id: str, delta: int, source: DeltaSource) -> int:
        """Apply `delta` to a medication's stock and return the new quantity.

        Raises InsufficientStock when the result would be negative, except for
        disposal, which floors the result at zero.
        """
        with self.lock(medication_id):
            med = self.get(medication_id)
            new_stock = med.current_stock + delta
            if new_stock < 0:
                if source is not DeltaSource.DISPOSAL:
                    raise InsufficientStock(medication_id, med.current_stock, -delta)
                logger.info(
                    f"Disposal of {-delta} from {medication_id} exceeds {med.current_stock} on hand; clamping to 0"
                )
                new_stock = 0

            self._state.medications[medication_id] = med.model_copy(
                update={"current_stock": new_stock, "last_updated": self._clock()}
            )
            self._state.mark_dirty(MEDICATIONS)
            logger.debug(f"{source.value}: {medication_id} {med.current_stock} -> {new_stock} (delta {delta:+d})")
            return new_stock

    def upsert(self, record: Medication, include_stock: bool = False) -> Medication:
        """Create or replace a medication's descriptive fields.

        An existing record keeps its stock unless `include_stock` is set.
        """
        with self.lock(record.id):
            existing = self.find(record.id)
            update = {"last_updated": self._clock()}
            if existing is not None and not include_stock:
                update["current_stock"] = existing.current_stock
            stored = Medication.model_validate({**record.model_dump(), **update})
            self._state.medications[record.id] = stored
            self._state.mark_dirty(MEDICATIONS)
            logger.debug(f"{'Updated' if existing else 'Created'} medication {record.id}")
            return stored
