from .errors import (
    AlreadyResolved,
    CountCancelled,
    EstimatorFailure,
    InsufficientStock,
    InventoryError,
    MedicationExpired,
    MedicationNotFound,
    NotFound,
    PermissionDenied,
    RequestNotFound,
    ValidationError,
)
from .roles import Actor, Capability, Role
from .service import WardInventory

__all__ = [
    "WardInventory",
    "Actor",
    "Capability",
    "Role",
    # Errors
    "InventoryError",
    "ValidationError",
    "MedicationExpired",
    "NotFound",
    "MedicationNotFound",
    "RequestNotFound",
    "InsufficientStock",
    "AlreadyResolved",
    "PermissionDenied",
    "EstimatorFailure",
    "CountCancelled",
]
