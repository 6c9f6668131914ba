from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet

from pydantic import BaseModel, ConfigDict, Field

from .errors import PermissionDenied


class Capability(str, Enum):
    DISPENSE = "dispense"
    MANAGE_INVENTORY = "manage_inventory"
    AUDIT_STOCK = "audit_stock"
    REQUEST_SUPPLY = "request_supply"
    FULFILL_SUPPLY = "fulfill_supply"
    INITIATE_DISPOSAL = "initiate_disposal"
    APPROVE_DISPOSAL = "approve_disposal"
    VIEW_REPORTS = "view_reports"


class Role(str, Enum):
    NURSE = "nurse"
    NURSE_MANAGER = "nurse_manager"
    PHARMACIST = "pharmacist"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.NURSE: frozenset({
        Capability.DISPENSE,
        Capability.AUDIT_STOCK,
        Capability.INITIATE_DISPOSAL,
        Capability.VIEW_REPORTS,
    }),
    Role.NURSE_MANAGER: frozenset({
        Capability.DISPENSE,
        Capability.AUDIT_STOCK,
        Capability.MANAGE_INVENTORY,
        Capability.REQUEST_SUPPLY,
        Capability.INITIATE_DISPOSAL,
        Capability.VIEW_REPORTS,
    }),
    Role.PHARMACIST: frozenset({
        Capability.AUDIT_STOCK,
        Capability.FULFILL_SUPPLY,
    }),
    Role.SUPERVISOR: frozenset({
        Capability.AUDIT_STOCK,
        Capability.APPROVE_DISPOSAL,
        Capability.VIEW_REPORTS,
    }),
    Role.ADMIN: frozenset(Capability),
}


class Actor(BaseModel):
    """The staff member performing an operation."""
    model_config = ConfigDict(frozen=True)

    staff_id: str = Field(min_length=1, description="Staff identifier")
    name: str = Field(description="Display name")
    role: Role = Field(description="Coarse role category")

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ROLE_CAPABILITIES[self.role]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def require(actor: Actor, capability: Capability) -> None:
    """Raise PermissionDenied unless the actor's role grants the capability."""
    if not actor.can(capability):
        raise PermissionDenied(actor.role.value, capability.value)
