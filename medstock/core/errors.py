"""
Typed errors raised by the ward inventory core.

Every error carries a machine-readable ``code`` and a short ``message``
that can be shown to the operator as-is. None of them are fatal: the
operation that raised is aborted with no ledger, log or workflow change,
and the system stays usable for the next action.

    InventoryError (base)
    |
    +-- ValidationError
    |   +-- MedicationExpired
    +-- NotFound
    |   +-- MedicationNotFound
    |   +-- RequestNotFound
    +-- InsufficientStock
    +-- AlreadyResolved
    +-- PermissionDenied
    +-- EstimatorFailure
    +-- CountCancelled

A reconciliation mismatch is not an error. It is recorded on the log
entry as ``verified=False``.
"""

from __future__ import annotations

from typing import Optional


class InventoryError(Exception):
    """Base class for all ward inventory errors."""

    code: str = "INVENTORY_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(InventoryError):
    """Malformed input to a core operation."""

    code = "VALIDATION_FAILED"


class MedicationExpired(ValidationError):
    code = "MEDICATION_EXPIRED"

    def __init__(self, medication_id: str, medication_name: str) -> None:
        self.medication_id = medication_id
        super().__init__(f"{medication_name} is expired and cannot be dispensed")


class NotFound(InventoryError):
    code = "NOT_FOUND"


class MedicationNotFound(NotFound):
    def __init__(self, medication_id: str) -> None:
        self.medication_id = medication_id
        super().__init__(f"Medication {medication_id} was not found")


class RequestNotFound(NotFound):
    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id} was not found")


class InsufficientStock(InventoryError):
    """Dispensing would drive stock below zero."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, medication_id: str, available: int, requested: int) -> None:
        self.medication_id = medication_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Only {available} unit(s) of {medication_id} on hand, {requested} requested"
        )


class AlreadyResolved(InventoryError):
    """A workflow record was resolved a second time."""

    code = "ALREADY_RESOLVED"

    def __init__(self, request_id: str, status: str) -> None:
        self.request_id = request_id
        self.status = status
        super().__init__(f"Request {request_id} is already {status}")


class PermissionDenied(InventoryError):
    code = "PERMISSION_DENIED"

    def __init__(self, role: str, capability: str) -> None:
        self.role = role
        self.capability = capability
        super().__init__(f"Role '{role}' may not {capability.replace('_', ' ')}")


class EstimatorFailure(InventoryError):
    """The optical estimator failed and no manual count was supplied."""

    code = "ESTIMATOR_FAILURE"

    def __init__(self, reason: str, cause: Optional[BaseException] = None) -> None:
        self.reason = reason
        self.cause = cause
        super().__init__(f"Pill count failed: {reason}. Enter the count manually")


class CountCancelled(InventoryError):
    """The operator cancelled the count; nothing was committed."""

    code = "COUNT_CANCELLED"

    def __init__(self, reason: str = "count cancelled by operator") -> None:
        super().__init__(reason)
