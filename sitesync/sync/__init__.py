"""Diff-based sync engine module."""

from .engine import SyncEngine
from .diff import DiffResult, ChangeType, compute_diff
from .executor import SyncExecutor, SyncReport, KeyFailure, PartialSyncFailure

__all__ = [
    "SyncEngine",
    "DiffResult",
    "ChangeType",
    "compute_diff",
    "SyncExecutor",
    "SyncReport",
    "KeyFailure",
    "PartialSyncFailure",
]
