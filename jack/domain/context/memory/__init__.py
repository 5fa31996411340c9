from .runtime_memory import RuntimeMemory
from .persistent_memory_store import PersistentMemoryStore

__all__ = ["RuntimeMemory", "PersistentMemoryStore"]
