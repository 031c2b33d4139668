"""Database package for liked-track snapshots and the sync run ledger.

Pure database layer only. Reconciliation logic lives in core/sync.
"""

from .models import (
    UNKNOWN_ARTIST,
    Base,
    FailureKind,
    SpotifyTrack,
    SyncRun,
    SyncStatus,
)
from .service import DatabaseService

__all__ = [
    # Models
    "Base",
    "SpotifyTrack",
    "SyncRun",
    # Database service
    "DatabaseService",
    # Status enums
    "FailureKind",
    "SyncStatus",
    "UNKNOWN_ARTIST",
]
