# Store adapters: the engine's data-access boundary
# Each adapter serves canonical rows from one kind of source

from .schema import unwrap_related, normalize_movement, normalize_correction, normalize_snapshot
from .memory import InMemoryStore
from .exports import ExportLoader, LoadedExports
from .sql import SqlStore

__all__ = [
    "unwrap_related",
    "normalize_movement",
    "normalize_correction",
    "normalize_snapshot",
    "InMemoryStore",
    "ExportLoader",
    "LoadedExports",
    "SqlStore",
]
