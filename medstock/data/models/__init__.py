from .medication import Medication, MedicationKind
from .administration import AdministrationLogEntry, CountSourceKind
from .workflow import (
    DisposalItem,
    DisposalReason,
    DisposalRecord,
    SupplyRequest,
    WorkflowItem,
    WorkflowRequest,
)
from .pill_count import PillCountResult
from .dashboard import (
    CategoryTotal,
    DashboardSummary,
    PatientSummary,
)

__all__ = [
    # Ledger records
    "Medication",
    "MedicationKind",
    "AdministrationLogEntry",
    "CountSourceKind",
    # Workflow records
    "WorkflowItem",
    "DisposalItem",
    "DisposalReason",
    "WorkflowRequest",
    "SupplyRequest",
    "DisposalRecord",
    # Collaborator output
    "PillCountResult",
    # Projections
    "CategoryTotal",
    "DashboardSummary",
    "PatientSummary",
]
