"""Liked-track reconciliation and its run ledger."""

from .ledger import (
    SyncCounters,
    SyncInProgressError,
    SyncRunFinalizedError,
    SyncRunLedger,
)
from .reconciler import (
    PAGE_SIZE,
    LikedTracksReconciler,
    LikedTracksSource,
    TrackStore,
    classify_failure,
)

__all__ = [
    "PAGE_SIZE",
    "LikedTracksReconciler",
    "LikedTracksSource",
    "TrackStore",
    "classify_failure",
    "SyncCounters",
    "SyncInProgressError",
    "SyncRunFinalizedError",
    "SyncRunLedger",
]
