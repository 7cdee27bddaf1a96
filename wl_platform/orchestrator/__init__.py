# Public surface of the orchestrator package.
from ..id_map import ID_KEYS
from ._types import CycleStatus, DispatchOutcome, MediaKind, SyncCycleResult, WatchlistItem
from ._retry import RetryPolicy
from .facade import Orchestrator, SyncContext

__all__ = [
    "Orchestrator",
    "SyncContext",
    "RetryPolicy",
    "MediaKind",
    "WatchlistItem",
    "DispatchOutcome",
    "CycleStatus",
    "SyncCycleResult",
    "ID_KEYS",
]
