"""SQLAlchemy database models for liked-track snapshots and sync runs."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

UNKNOWN_ARTIST = "Unknown Artist"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (SQLite stores no offset)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SyncStatus(str, Enum):
    """Lifecycle status of a sync run."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def terminal(cls) -> tuple:
        """Return the statuses a run may finish in."""
        return (cls.COMPLETED, cls.FAILED)


class FailureKind(str, Enum):
    """Why a sync run failed."""

    TRANSIENT = "transient"  # worth retrying later (network, rate limit, lock)
    PERMANENT = "permanent"
    CONFLICT = "conflict"  # another run was already pending


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class SpotifyTrack(Base):
    """Local snapshot of one liked Spotify track."""

    __tablename__ = "spotify_tracks"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Spotify identifier (natural key)
    spotify_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )

    # Track metadata
    name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    artist: Mapped[str] = mapped_column(
        String(500), nullable=False, default=UNKNOWN_ARTIST
    )  # First listed artist only
    album: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    album_art_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    preview_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    external_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Like state
    is_liked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    liked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )  # Spotify's added_at, not local write time

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (Index("idx_liked_at", "is_liked", "liked_at"),)

    def __repr__(self) -> str:
        """String representation of SpotifyTrack."""
        return (
            f"<SpotifyTrack(id={self.id}, spotify_id='{self.spotify_id}', "
            f"name='{self.name}', is_liked={self.is_liked})>"
        )


class SyncRun(Base):
    """Audit record of one reconciliation attempt."""

    __tablename__ = "sync_runs"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Lifecycle
    started_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SyncStatus.PENDING.value, index=True
    )

    # Counters
    tracks_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_removed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracks_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tracks_processed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    # Failure detail (only set when status is failed)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_kind: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def duration_seconds(self) -> Optional[float]:
        """Seconds between start and completion, None while unfinished."""
        if self.completed_at is None or self.started_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def is_pending(self) -> bool:
        """Whether the run has not reached a terminal status yet."""
        return self.status == SyncStatus.PENDING.value

    @property
    def is_finished(self) -> bool:
        """Whether the run completed or failed."""
        return self.status in (s.value for s in SyncStatus.terminal())

    def __repr__(self) -> str:
        """String representation of SyncRun."""
        return (
            f"<SyncRun(id={self.id}, status='{self.status}', "
            f"started_at='{self.started_at}')>"
        )
