from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from .administration import AdministrationLog, AdministrationService, DispenseResult
from .clock import Clock, utc_now
from .dashboard import DashboardAggregator
from .disposal import DisposalLine, DisposalWorkflow, add_all_expired, add_all_surplus
from .errors import InventoryError, ValidationError
from .ledger import StockLedger
from .reconciliation import CountSource, ReconciliationEngine, ReconciliationResult, as_count_source
from .roles import Actor, Capability, require
from .supply import SupplyWorkflow
from .workflow import LineDraft, first_error
from ..config import AppConfig, get_config
from ..data.interface import StateStore
from ..data.models import (
    AdministrationLogEntry,
    DashboardSummary,
    DisposalRecord,
    Medication,
    MedicationKind,
    PatientSummary,
    SupplyRequest,
)
from ..data.seed_data import default_medications
from ..data.state import WardState
from ..data.util import get_state_store
from ..logging import get_logger

logger = get_logger(__name__)

_EDITABLE_FIELDS = {"name", "dosage", "ref_number", "min_threshold", "category", "expiry_date", "kind"}


@contextmanager
def _rejections(operation: str, actor: Actor) -> Iterator[None]:
    try:
        yield
    except InventoryError as e:
        logger.info(f"Rejected {operation} by {actor.staff_id}: [{e.code}] {e.message}")
        raise


class WardInventory:
    """
    The operations offered to the presentation layer.

    Callers never touch the collections directly; every change goes through
    one of these methods, which check the actor's capability first.
    """

    def __init__(
        self,
        store: StateStore,
        config: Optional[AppConfig] = None,
        clock: Clock = utc_now,
        engine: Optional[ReconciliationEngine] = None,
    ) -> None:
        self.config = config or get_config()
        self._clock = clock
        seed = (lambda: default_medications(clock())) if self.config.seed_on_empty else None
        self.state = WardState.load(store, seed=seed)
        self.ledger = StockLedger(self.state, clock)
        self.log = AdministrationLog(self.state)
        self.administration = AdministrationService(
            self.state,
            self.ledger,
            self.log,
            engine=engine,
            clock=clock,
            max_quantity=self.config.max_dispense_quantity,
        )
        self.supply = SupplyWorkflow(self.state, self.ledger, clock)
        self.disposal = DisposalWorkflow(self.state, self.ledger, clock)
        self.aggregator = DashboardAggregator(
            default_threshold=self.config.default_min_threshold,
            top_n=self.config.dashboard_top_categories,
        )

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None, clock: Clock = utc_now) -> "WardInventory":
        config = config or get_config()
        return cls(get_state_store(config.store_backend), config=config, clock=clock)

    def today(self) -> date:
        return self._clock().date()

    # ---------- inventory ----------

    def list_medications(self, kind: Optional[MedicationKind] = None, search: str = "") -> List[Medication]:
        return self.ledger.search(search, kind)

    def get_medication(self, medication_id: str) -> Medication:
        return self.ledger.get(medication_id)

    def eligible_for_dispense(self, kind: Optional[MedicationKind] = None) -> List[Medication]:
        return self.ledger.eligible_for_dispense(self.today(), kind)

    def add_medication(self, actor: Actor, **fields: Any) -> Medication:
        with _rejections("add medication", actor):
            require(actor, Capability.MANAGE_INVENTORY)
            fields.setdefault("min_threshold", self.config.default_min_threshold)
            fields.setdefault("id", uuid.uuid4().hex[:9])
            if self.ledger.find(fields["id"]) is not None:
                raise ValidationError(f"Medication {fields['id']} already exists")
            try:
                record = Medication(**{**fields, "last_updated": self._clock()})
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid medication: {first_error(e)}") from e
            with self.ledger.lock(record.id), self.state.transaction():
                stored = self.ledger.upsert(record, include_stock=True)
        logger.info(f"{actor.staff_id} added {stored.id} ({stored.name}) with {stored.current_stock} unit(s)")
        return stored

    def edit_medication(self, actor: Actor, medication_id: str, **changes: Any) -> Medication:
        """Replace descriptive fields. Stock only moves through dispense, supply and disposal."""
        with _rejections("edit medication", actor):
            require(actor, Capability.MANAGE_INVENTORY)
            forbidden = set(changes) - _EDITABLE_FIELDS
            if forbidden:
                raise ValidationError(f"Cannot edit {', '.join(sorted(forbidden))}")
            with self.ledger.lock(medication_id), self.state.transaction():
                current = self.ledger.get(medication_id)
                try:
                    record = Medication.model_validate({**current.model_dump(), **changes})
                except PydanticValidationError as e:
                    raise ValidationError(f"Invalid medication: {first_error(e)}") from e
                stored = self.ledger.upsert(record)
        logger.info(f"{actor.staff_id} edited {medication_id}: {', '.join(sorted(changes)) or 'no changes'}")
        return stored

    # ---------- administration ----------

    def dispense(
        self,
        actor: Actor,
        medication_id: str,
        quantity: int,
        patient_id: str,
        count_source: CountSource | int,
        notes: Optional[str] = None,
    ) -> DispenseResult:
        with _rejections("dispense", actor):
            return self.administration.dispense(
                actor, medication_id, quantity, patient_id, as_count_source(count_source), notes=notes
            )

    def audit_stock(self, actor: Actor, medication_id: str, count_source: CountSource | int) -> ReconciliationResult:
        with _rejections("stock audit", actor):
            return self.administration.audit_stock(actor, medication_id, as_count_source(count_source))

    def search_log(self, actor: Actor, term: str = "") -> List[AdministrationLogEntry]:
        with _rejections("history search", actor):
            require(actor, Capability.VIEW_REPORTS)
        return self.log.search(term)

    def patient_summaries(self, actor: Actor) -> List[PatientSummary]:
        with _rejections("patient summaries", actor):
            require(actor, Capability.VIEW_REPORTS)
        return self.aggregator.patient_summaries(self.log.entries())

    # ---------- supply ----------

    def create_supply_request(self, actor: Actor, lines: Sequence[LineDraft], signature: str) -> SupplyRequest:
        with _rejections("supply request", actor):
            return self.supply.create(actor, lines, signature)

    def confirm_supply_delivery(self, actor: Actor, request_id: str, signature: str) -> SupplyRequest:
        with _rejections(f"delivery of {request_id}", actor):
            return self.supply.resolve(actor, request_id, signature)

    def supply_requests(self, status: Optional[str] = None) -> List[SupplyRequest]:
        return self.supply.list(status)

    # ---------- disposal ----------

    def prefill_expired(self, draft: Sequence[DisposalLine] = ()) -> List[DisposalLine]:
        return add_all_expired(draft, self.ledger.all(), self.today())

    def prefill_surplus(self, draft: Sequence[DisposalLine] = ()) -> List[DisposalLine]:
        return add_all_surplus(draft, self.ledger.all())

    def create_disposal(self, actor: Actor, lines: Sequence[DisposalLine], signature: str) -> DisposalRecord:
        with _rejections("disposal record", actor):
            return self.disposal.create(actor, lines, signature)

    def complete_disposal(self, actor: Actor, record_id: str, signature: str) -> DisposalRecord:
        with _rejections(f"disposal {record_id}", actor):
            return self.disposal.resolve(actor, record_id, signature)

    def disposal_records(self, status: Optional[str] = None) -> List[DisposalRecord]:
        return self.disposal.list(status)

    # ---------- reporting ----------

    def dashboard(self, actor: Actor) -> DashboardSummary:
        with _rejections("dashboard", actor):
            require(actor, Capability.VIEW_REPORTS)
        return self.aggregator.summarize(
            self.ledger.all(),
            self.log.entries(),
            self.supply.list(),
            self.disposal.list(),
            self.today(),
        )

    # ---------- preferences ----------

    def get_preference(self, name: str, default: Any = None) -> Any:
        return self.state.get_preference(name, default)

    def set_preference(self, name: str, value: Any) -> None:
        self.state.set_preference(name, value)
