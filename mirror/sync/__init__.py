"""
Sync engine for mirroring Notion content.
"""

from mirror.sync.engine import SoftFailure, SyncEngine, SyncSummary, run_sync
from mirror.sync.exceptions import (
    RetriesExhaustedError,
    StoreError,
    StructuralError,
    SyncAbortedError,
    SyncError,
)
from mirror.sync.frontier import Frontier
from mirror.sync.models import SyncEvent, SyncSession

__all__ = [
    "SyncEngine",
    "SyncSummary",
    "SoftFailure",
    "run_sync",
    "Frontier",
    "SyncSession",
    "SyncEvent",
    "SyncError",
    "SyncAbortedError",
    "StoreError",
    "StructuralError",
    "RetriesExhaustedError",
]
