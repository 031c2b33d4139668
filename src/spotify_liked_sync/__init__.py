"""Spotify Liked Tracks Sync.

Keeps a local SQLite snapshot of a user's Spotify liked tracks up to date and
records an audit entry for every sync run.
"""

__version__ = "1.0.0"

from .config import Config
from .core.spotify import SpotifyApiError, SpotifyClient
from .core.sync import LikedTracksReconciler
from .database import DatabaseService, SpotifyTrack, SyncRun, SyncStatus

__all__ = [
    "Config",
    "DatabaseService",
    "LikedTracksReconciler",
    "SpotifyApiError",
    "SpotifyClient",
    "SpotifyTrack",
    "SyncRun",
    "SyncStatus",
]
