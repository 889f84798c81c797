from .backends import FileBackend, KeyValueBackend, MemoryBackend, RedisBackend, build_backend
from .history import HistoryLedger, classify_decision
from .state_store import DurableStateStore, StoreResult

__all__ = [
    "FileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "RedisBackend",
    "build_backend",
    "HistoryLedger",
    "classify_decision",
    "DurableStateStore",
    "StoreResult",
]
