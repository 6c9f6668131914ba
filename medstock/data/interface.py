# medstock/data/interface.py
from __future__ import annotations

from typing import Any, Optional, Protocol

# ---- Durable keys ----

MEDICATIONS = "medications"
ADMINISTRATION_LOG = "administration_log"
SUPPLY_REQUESTS = "supply_requests"
DISPOSAL_RECORDS = "disposal_records"
PREFERENCES = "preferences"
COMMIT_JOURNAL = "commit_journal"

COLLECTIONS = (MEDICATIONS, ADMINISTRATION_LOG, SUPPLY_REQUESTS, DISPOSAL_RECORDS)


# ---- State store protocol ----

class StateStore(Protocol):
    """
    Backend-agnostic key-value contract for durable ward state.

    Values are JSON-compatible (dicts, lists, strings, numbers, booleans).
    - `load` returns None for an absent key.
    - `save(key, None)` clears the key.
    - Implementations MUST NOT hand out references to their internal state;
      callers may mutate what `load` returns.
    """

    def load(self, key: str) -> Optional[Any]:
        """Return the stored value or None when the key is absent."""
        ...

    def save(self, key: str, value: Optional[Any]) -> None:
        """Durably store `value` under `key` (None clears the key)."""
        ...
