"""Reconcile the user's Spotify liked tracks with the local snapshot table.

One run pages through the remote listing, upserts every entry, then retracts
local tracks that were not seen anywhere in the listing. The outcome is
always returned as a finalized SyncRun; errors never escape reconcile().
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Protocol, Set

import requests
from sqlalchemy.exc import OperationalError

from ...config import MAX_PAGE_SIZE
from ...database.models import (
    UNKNOWN_ARTIST,
    FailureKind,
    SpotifyTrack,
    SyncRun,
    SyncStatus,
    utcnow,
)
from ...models import LikedTrackEntry, LikedTracksPage
from ..spotify.client import SpotifyApiError
from .ledger import (
    DEFAULT_STALE_AFTER,
    SyncCounters,
    SyncInProgressError,
    SyncRunLedger,
    SyncRunStore,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = MAX_PAGE_SIZE


class LikedTracksSource(Protocol):
    """Remote paginated listing of liked tracks."""

    def fetch_liked_page(self, offset: int, limit: int) -> LikedTracksPage: ...


class TrackStore(SyncRunStore, Protocol):
    """Local snapshot store (plus the run ledger's persistence)."""

    def get_track_by_spotify_id(self, spotify_id: str) -> Optional[SpotifyTrack]: ...

    def create_track(self, track_data: Dict[str, Any]) -> SpotifyTrack: ...

    def update_track(
        self, track_id: int, track_data: Dict[str, Any]
    ) -> SpotifyTrack: ...

    def mark_unliked_except(self, seen_ids: Iterable[str]) -> int: ...


def classify_failure(error: BaseException) -> FailureKind:
    """Decide whether a failure is worth retrying later."""
    if isinstance(error, SpotifyApiError):
        return FailureKind.TRANSIENT if error.transient else FailureKind.PERMANENT
    if isinstance(error, (requests.Timeout, requests.ConnectionError)):
        return FailureKind.TRANSIENT
    if isinstance(error, OperationalError):
        return FailureKind.TRANSIENT
    return FailureKind.PERMANENT


def describe_failure(error: BaseException) -> str:
    """Human-readable failure text for the run record."""
    message = str(error).strip()
    return message or f"{type(error).__name__} raised without a message"


class LikedTracksReconciler:
    """Brings the local snapshot table in line with the remote liked tracks."""

    def __init__(
        self,
        page_size: int = PAGE_SIZE,
        retract_on_empty: bool = False,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        """Initialize the reconciler.

        Args:
            page_size: Entries requested per page (1 to 50)
            retract_on_empty: Retract every liked track when the remote
                listing is empty. Off by default since an empty listing is
                more often an upstream glitch than a user unliking everything.
            stale_after: Age after which a pending run counts as abandoned
        """
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}: {page_size}"
            )
        self.page_size = page_size
        self.retract_on_empty = retract_on_empty
        self.stale_after = stale_after

    def reconcile(
        self, remote_source: LikedTracksSource, local_store: TrackStore
    ) -> SyncRun:
        """Run one reconciliation.

        Args:
            remote_source: Source of liked-track pages, already authenticated
            local_store: Snapshot store, also used to persist the run record

        Returns:
            The finalized SyncRun, with status completed or failed
        """
        ledger = SyncRunLedger(local_store, stale_after=self.stale_after)
        counters = SyncCounters()
        started_at = utcnow()

        try:
            run = ledger.create(started_at)
        except SyncInProgressError as e:
            logger.warning("Liked tracks sync refused: %s", e)
            return e.run
        except Exception as e:
            logger.exception("Could not record start of liked tracks sync")
            return self._unsaved_failure(started_at, counters, e)

        try:
            seen = self._apply_remote_state(remote_source, local_store, counters)
            counters.tracks_removed = self._retract_unseen(local_store, seen)
        except Exception as e:
            logger.error("Liked tracks sync failed: %s", e)
            return self._finish(
                ledger,
                run,
                SyncStatus.FAILED,
                counters,
                error_message=describe_failure(e),
                failure_kind=classify_failure(e),
            )

        return self._finish(ledger, run, SyncStatus.COMPLETED, counters)

    def _apply_remote_state(
        self,
        remote_source: LikedTracksSource,
        local_store: TrackStore,
        counters: SyncCounters,
    ) -> Set[str]:
        """Page through the remote listing and upsert every entry.

        Returns:
            Spotify IDs seen across all pages
        """
        seen: Set[str] = set()
        offset = 0

        while True:
            page = remote_source.fetch_liked_page(offset, self.page_size)
            logger.debug("Processing %d liked tracks at offset %d", page.count, offset)

            for entry in page.items:
                self._apply_entry(entry, local_store, counters, seen)

            if not page.has_more:
                break
            offset += self.page_size

        logger.info(
            "Processed %d liked tracks (%d new, %d updated, %d skipped)",
            counters.total_tracks_processed,
            counters.tracks_added,
            counters.tracks_updated,
            counters.tracks_skipped,
        )
        return seen

    def _apply_entry(
        self,
        entry: LikedTrackEntry,
        local_store: TrackStore,
        counters: SyncCounters,
        seen: Set[str],
    ) -> None:
        """Create or refresh the snapshot for one remote entry."""
        spotify_id = entry.spotify_id
        if not spotify_id:
            counters.tracks_skipped += 1
            logger.warning("Skipping liked track without an ID: '%s'", entry.name)
            return

        track_data = self._snapshot_fields(entry)
        existing = local_store.get_track_by_spotify_id(spotify_id)
        if existing:
            local_store.update_track(existing.id, track_data)
            counters.tracks_updated += 1
        else:
            local_store.create_track({"spotify_id": spotify_id, **track_data})
            counters.tracks_added += 1

        seen.add(spotify_id)
        counters.total_tracks_processed += 1

    @staticmethod
    def _snapshot_fields(entry: LikedTrackEntry) -> Dict[str, Any]:
        """Map a remote entry onto the mutable snapshot columns."""
        return {
            "name": entry.name,
            "artist": entry.primary_artist or UNKNOWN_ARTIST,
            "album": entry.album_name,
            "album_art_url": entry.artwork_url,
            "preview_url": entry.preview_url,
            "duration_ms": entry.duration_ms,
            "external_url": entry.external_url,
            "is_liked": True,
            "liked_at": entry.added_at,
        }

    def _retract_unseen(self, local_store: TrackStore, seen: Set[str]) -> int:
        """Mark liked tracks missing from the full listing as unliked."""
        if not seen and not self.retract_on_empty:
            logger.warning(
                "Remote listing returned no tracks, skipping retraction "
                "(enable retract_on_empty to unlike everything)"
            )
            return 0
        return local_store.mark_unliked_except(seen)

    def _finish(
        self,
        ledger: SyncRunLedger,
        run: SyncRun,
        status: SyncStatus,
        counters: SyncCounters,
        error_message: Optional[str] = None,
        failure_kind: Optional[FailureKind] = None,
    ) -> SyncRun:
        """Finalize the run, falling back to the in-memory record on error."""
        try:
            return ledger.finalize(
                run,
                status,
                counters,
                error_message=error_message,
                failure_kind=failure_kind,
            )
        except Exception as e:
            logger.exception("Could not record outcome of sync run %s", run.id)
            if status == SyncStatus.COMPLETED:
                status = SyncStatus.FAILED
                error_message = (
                    f"Sync finished but its result could not be saved: "
                    f"{describe_failure(e)}"
                )
                failure_kind = classify_failure(e)
            self._apply_outcome(run, status, counters, error_message, failure_kind)
            return run

    def _unsaved_failure(
        self, started_at: datetime, counters: SyncCounters, error: Exception
    ) -> SyncRun:
        """Build a failed run that could not be persisted."""
        run = SyncRun(started_at=started_at)
        self._apply_outcome(
            run,
            SyncStatus.FAILED,
            counters,
            f"Could not start sync: {describe_failure(error)}",
            classify_failure(error),
        )
        return run

    @staticmethod
    def _apply_outcome(
        run: SyncRun,
        status: SyncStatus,
        counters: SyncCounters,
        error_message: Optional[str],
        failure_kind: Optional[FailureKind],
    ) -> None:
        run.status = status.value
        run.completed_at = utcnow()
        for key, value in counters.to_dict().items():
            setattr(run, key, value)
        if status == SyncStatus.FAILED:
            run.error_message = error_message or "Unknown error"
            run.failure_kind = (failure_kind or FailureKind.PERMANENT).value
