"""Database service for liked-track snapshots and sync run records."""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import create_engine, func, inspect, select, update
from sqlalchemy.orm import Session, sessionmaker

from alembic import command  # type: ignore[attr-defined]
from alembic.config import Config as AlembicConfig  # type: ignore[import-not-found]

from .models import Base, SpotifyTrack, SyncRun, SyncStatus, utcnow

logger = logging.getLogger(__name__)

# Stay well below SQLite's bound-parameter limit for IN (...) clauses
BULK_CHUNK_SIZE = 500


class DatabaseService:
    """Service for database operations and transaction management."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """Initialize database service.

        Args:
            db_path: Path to SQLite database file.
                    If None, uses default ~/.spotify-liked-sync/sync.db
        """
        if db_path is None:
            db_path = Path.home() / ".spotify-liked-sync" / "sync.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        db_exists = self.db_path.exists()

        db_url = f"sqlite:///{self.db_path}"
        self.engine = create_engine(db_url, echo=False)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

        logger.info("Database initialized at: %s", self.db_path)

        if not db_exists:
            logger.info("New database detected, initializing schema...")
            self.init_db()

    def init_db(self) -> None:
        """Initialize database schema.

        Creates all tables with SQLAlchemy and stamps Alembic at head, since a
        freshly created schema already matches the latest revision.
        """
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema created successfully")
        self._stamp_migrations()

    def _alembic_config(self) -> Optional[AlembicConfig]:
        """Build an Alembic config pointing at this database, if available."""
        # alembic.ini and alembic/ live in the project root, next to src/
        package_dir = Path(__file__).parent.parent.parent.parent
        alembic_ini = package_dir / "alembic.ini"
        alembic_dir = package_dir / "alembic"

        if not alembic_ini.exists() or not alembic_dir.exists():
            logger.warning("Alembic not found at %s, skipping", package_dir)
            return None

        alembic_cfg = AlembicConfig(str(alembic_ini))
        alembic_cfg.set_main_option("script_location", str(alembic_dir))
        alembic_cfg.set_main_option("sqlalchemy.url", f"sqlite:///{self.db_path}")
        return alembic_cfg

    def _stamp_migrations(self) -> None:
        """Stamp database as being at the latest migration version."""
        try:
            alembic_cfg = self._alembic_config()
            if alembic_cfg is None:
                return
            command.stamp(alembic_cfg, "head")
            logger.info("Database stamped with latest migration version")
        except Exception as e:
            logger.error("Failed to stamp migrations: %s", e)
            logger.warning("Database may need manual migration")

    def run_migrations(self) -> None:
        """Run Alembic migrations to upgrade database to latest version."""
        try:
            alembic_cfg = self._alembic_config()
            if alembic_cfg is None:
                return
            command.upgrade(alembic_cfg, "head")
            logger.info("Database migrations applied successfully")
        except Exception as e:
            logger.error("Failed to run migrations: %s", e)
            logger.warning("Continuing with base schema only")

    def get_session(self) -> Session:
        """Get a new database session.

        Returns:
            SQLAlchemy Session object

        Note:
            Caller is responsible for closing the session
        """
        return self.SessionLocal()

    def is_initialized(self) -> bool:
        """Check that the engine works and the required tables exist."""
        try:
            inspector = inspect(self.engine)
            has_tracks = inspector.has_table(SpotifyTrack.__tablename__)
            has_runs = inspector.has_table(SyncRun.__tablename__)

            if not (has_tracks and has_runs):
                logger.debug(
                    "Required tables missing - spotify_tracks: %s, sync_runs: %s",
                    has_tracks,
                    has_runs,
                )
                return False

            with self.SessionLocal() as session:
                session.execute(select(1))

            return True
        except Exception as e:
            logger.debug("Database initialization check failed: %s", e)
            return False

    # =========================================================================
    # Track Operations
    # =========================================================================

    def get_track_by_id(self, track_id: int) -> Optional[SpotifyTrack]:
        """Get track by database ID."""
        with self.get_session() as session:
            return session.get(SpotifyTrack, track_id)

    def get_track_by_spotify_id(self, spotify_id: str) -> Optional[SpotifyTrack]:
        """Get track by Spotify ID.

        Args:
            spotify_id: Spotify track ID

        Returns:
            SpotifyTrack object or None if not found
        """
        with self.get_session() as session:
            stmt = select(SpotifyTrack).where(SpotifyTrack.spotify_id == spotify_id)
            return session.scalar(stmt)

    def create_track(self, track_data: Dict[str, Any]) -> SpotifyTrack:
        """Create a new track snapshot.

        Args:
            track_data: Track data dictionary (must include spotify_id)

        Returns:
            Created SpotifyTrack object
        """
        with self.get_session() as session:
            track = SpotifyTrack(**track_data)
            session.add(track)
            session.commit()
            session.refresh(track)
            logger.debug(
                "Created track: %s - %s (%s)", track.artist, track.name, track.spotify_id
            )
            return track

    def update_track(self, track_id: int, track_data: Dict[str, Any]) -> SpotifyTrack:
        """Update an existing track snapshot.

        Args:
            track_id: Track database ID
            track_data: Track data dictionary with fields to update

        Returns:
            Updated SpotifyTrack object

        Raises:
            ValueError: If the track does not exist
        """
        with self.get_session() as session:
            track = session.get(SpotifyTrack, track_id)
            if not track:
                raise ValueError(f"Track not found: {track_id}")

            for key, value in track_data.items():
                if hasattr(track, key):
                    setattr(track, key, value)

            track.updated_at = utcnow()
            session.commit()
            session.refresh(track)
            logger.debug("Updated track: %s", track.spotify_id)
            return track

    def mark_unliked_except(self, seen_ids: Iterable[str]) -> int:
        """Retract every liked track whose Spotify ID is not in seen_ids.

        Rows are never deleted; only is_liked flips to False.

        Args:
            seen_ids: Spotify IDs observed in the current remote listing

        Returns:
            Number of tracks that were marked as unliked
        """
        seen = set(seen_ids)
        with self.get_session() as session:
            liked_ids = set(
                session.scalars(
                    select(SpotifyTrack.spotify_id).where(
                        SpotifyTrack.is_liked.is_(True)
                    )
                )
            )
            stale_ids = sorted(liked_ids - seen)

            removed = 0
            now = utcnow()
            for start in range(0, len(stale_ids), BULK_CHUNK_SIZE):
                chunk = stale_ids[start : start + BULK_CHUNK_SIZE]
                stmt = (
                    update(SpotifyTrack)
                    .where(
                        SpotifyTrack.spotify_id.in_(chunk),
                        SpotifyTrack.is_liked.is_(True),
                    )
                    .values(is_liked=False, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                removed += session.execute(stmt).rowcount or 0

            session.commit()

        if removed:
            logger.info("Marked %d tracks as no longer liked", removed)
        return removed

    def get_liked_tracks(
        self, limit: Optional[int] = None, offset: int = 0
    ) -> List[SpotifyTrack]:
        """Get currently liked tracks, most recently liked first."""
        with self.get_session() as session:
            stmt = (
                select(SpotifyTrack)
                .where(SpotifyTrack.is_liked.is_(True))
                .order_by(SpotifyTrack.liked_at.desc(), SpotifyTrack.id.desc())
                .offset(offset)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return list(session.scalars(stmt).all())

    def get_all_tracks(self) -> List[SpotifyTrack]:
        """Get every track snapshot, liked or not."""
        with self.get_session() as session:
            return list(session.scalars(select(SpotifyTrack)).all())

    # =========================================================================
    # Sync Run Operations
    # =========================================================================

    def create_sync_run(self, run_data: Dict[str, Any]) -> SyncRun:
        """Create a sync run record.

        Args:
            run_data: Sync run data dictionary

        Returns:
            Created SyncRun object
        """
        with self.get_session() as session:
            run = SyncRun(**run_data)
            session.add(run)
            session.commit()
            session.refresh(run)
            logger.debug("Created sync run %s (%s)", run.id, run.status)
            return run

    def update_sync_run(self, run_id: int, run_data: Dict[str, Any]) -> SyncRun:
        """Update a sync run record.

        Raises:
            ValueError: If the run does not exist
        """
        with self.get_session() as session:
            run = session.get(SyncRun, run_id)
            if not run:
                raise ValueError(f"Sync run not found: {run_id}")

            for key, value in run_data.items():
                if hasattr(run, key):
                    setattr(run, key, value)

            session.commit()
            session.refresh(run)
            return run

    def finish_pending_sync_run(
        self, run_id: int, run_data: Dict[str, Any]
    ) -> Optional[SyncRun]:
        """Update a sync run only while it is still pending.

        The status check and the write happen in one UPDATE statement, so
        two callers cannot both finish the same run.

        Returns:
            The updated SyncRun, or None if no pending run has this ID
        """
        with self.get_session() as session:
            stmt = (
                update(SyncRun)
                .where(
                    SyncRun.id == run_id,
                    SyncRun.status == SyncStatus.PENDING.value,
                )
                .values({"updated_at": utcnow(), **run_data})
                .execution_options(synchronize_session=False)
            )
            if not session.execute(stmt).rowcount:
                session.rollback()
                return None
            session.commit()
            return session.get(SyncRun, run_id)

    def get_sync_run(self, run_id: int) -> Optional[SyncRun]:
        """Get sync run by database ID."""
        with self.get_session() as session:
            return session.get(SyncRun, run_id)

    def get_pending_sync_runs(self) -> List[SyncRun]:
        """Get all sync runs still in pending state, oldest first."""
        with self.get_session() as session:
            stmt = (
                select(SyncRun)
                .where(SyncRun.status == SyncStatus.PENDING.value)
                .order_by(SyncRun.id)
            )
            return list(session.scalars(stmt).all())

    def get_recent_sync_runs(self, limit: int = 5) -> List[SyncRun]:
        """Get the most recent sync runs, newest first."""
        with self.get_session() as session:
            stmt = select(SyncRun).order_by(SyncRun.id.desc()).limit(limit)
            return list(session.scalars(stmt).all())

    def get_latest_sync_run(self) -> Optional[SyncRun]:
        """Get the most recently started sync run."""
        runs = self.get_recent_sync_runs(limit=1)
        return runs[0] if runs else None

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def get_statistics(self) -> Dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with statistics
        """
        with self.get_session() as session:
            track_count = session.scalar(select(func.count(SpotifyTrack.id))) or 0
            liked_count = (
                session.scalar(
                    select(func.count(SpotifyTrack.id)).where(
                        SpotifyTrack.is_liked.is_(True)
                    )
                )
                or 0
            )
            run_count = session.scalar(select(func.count(SyncRun.id))) or 0

        latest = self.get_latest_sync_run()
        return {
            "tracks": track_count,
            "liked_tracks": liked_count,
            "unliked_tracks": track_count - liked_count,
            "sync_runs": run_count,
            "last_sync_status": latest.status if latest else None,
            "database_path": str(self.db_path),
        }

    def close(self) -> None:
        """Close database connection."""
        if hasattr(self, "engine"):
            self.engine.dispose()
            logger.info("Database connection closed")
