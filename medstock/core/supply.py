from __future__ import annotations

from .ledger import DeltaSource
from .roles import Capability
from .workflow import TwoPartyWorkflow
from ..data.interface import SUPPLY_REQUESTS
from ..data.models import SupplyRequest


class SupplyWorkflow(TwoPartyWorkflow[SupplyRequest]):
    """Replenishment from the central pharmacy: pending -> delivered.

    Delivery adds every line's quantity to the ledger.
    """

    record_type = SupplyRequest
    collection = SUPPLY_REQUESTS
    id_prefix = "REQ"
    create_capability = Capability.REQUEST_SUPPLY
    resolve_capability = Capability.FULFILL_SUPPLY
    delta_sign = 1
    delta_source = DeltaSource.SUPPLY
    initiator_label = "Nurse manager"
    resolver_label = "Pharmacist"
