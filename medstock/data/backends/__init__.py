from .json_backend import JsonFileStore
from .memory_backend import MemoryStore

__all__ = ["JsonFileStore", "MemoryStore"]
