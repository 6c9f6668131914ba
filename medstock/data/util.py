from __future__ import annotations

from typing import Literal, Optional

from .backends import JsonFileStore, MemoryStore
from .interface import StateStore
from ..config import get_config


def get_state_store(kind: Optional[Literal["json", "memory"]] = None) -> StateStore:
    config = get_config()
    kind = kind or config.store_backend
    if kind == "json":
        # Reads from the configured data folder
        return JsonFileStore(data_dir=config.data_dir)
    if kind == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown state store kind: {kind}")
