"""Sync run ledger: opens and closes the audit record of each sync run.

A run is created in ``pending`` and moves exactly once to ``completed`` or
``failed``. Only one run may be pending at a time; a run started while
another is in progress is recorded as a ``conflict`` failure.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from ...database.models import FailureKind, SyncRun, SyncStatus, utcnow

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = timedelta(hours=1)


class SyncRunStore(Protocol):
    """Persistence operations the ledger relies on."""

    def create_sync_run(self, run_data: Dict[str, Any]) -> SyncRun: ...

    def update_sync_run(self, run_id: int, run_data: Dict[str, Any]) -> SyncRun: ...

    def finish_pending_sync_run(
        self, run_id: int, run_data: Dict[str, Any]
    ) -> Optional[SyncRun]: ...

    def get_sync_run(self, run_id: int) -> Optional[SyncRun]: ...

    def get_pending_sync_runs(self) -> List[SyncRun]: ...


class SyncInProgressError(Exception):
    """Raised when a run is refused because another run is pending."""

    def __init__(self, run: SyncRun, blocking_run_id: int) -> None:
        """Initialize with the refused (already finalized) run."""
        super().__init__(
            f"Another sync is already in progress (run {blocking_run_id})"
        )
        self.run = run
        self.blocking_run_id = blocking_run_id


class SyncRunFinalizedError(Exception):
    """Raised when finalizing a run that is no longer pending."""


@dataclass
class SyncCounters:
    """Counters accumulated during one run."""

    tracks_added: int = 0
    tracks_updated: int = 0
    tracks_removed: int = 0
    tracks_skipped: int = 0
    total_tracks_processed: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {
            "tracks_added": self.tracks_added,
            "tracks_updated": self.tracks_updated,
            "tracks_removed": self.tracks_removed,
            "tracks_skipped": self.tracks_skipped,
            "total_tracks_processed": self.total_tracks_processed,
        }


class SyncRunLedger:
    """Creates and finalizes sync run records."""

    def __init__(
        self, store: SyncRunStore, stale_after: timedelta = DEFAULT_STALE_AFTER
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Persistence backend (normally DatabaseService)
            stale_after: Age after which a pending run counts as abandoned
        """
        self.store = store
        self.stale_after = stale_after

    def _is_stale(self, run: SyncRun, now: datetime) -> bool:
        return run.started_at < now - self.stale_after

    def _close_abandoned_runs(self, now: datetime) -> None:
        """Fail pending runs that are too old to still be running."""
        for run in self.store.get_pending_sync_runs():
            if not self._is_stale(run, now):
                continue
            logger.warning(
                "Sync run %s pending since %s, marking as abandoned",
                run.id,
                run.started_at,
            )
            self.store.update_sync_run(
                run.id,
                {
                    "status": SyncStatus.FAILED.value,
                    "completed_at": now,
                    "error_message": "Sync run abandoned before completion",
                    "failure_kind": FailureKind.TRANSIENT.value,
                },
            )

    def create(self, started_at: Optional[datetime] = None) -> SyncRun:
        """Open a new pending run.

        The run is inserted first and then checked against older pending
        runs, so of two runs racing to start only the earlier one proceeds.

        Args:
            started_at: Start time, defaults to now

        Returns:
            The pending SyncRun

        Raises:
            SyncInProgressError: If an earlier run is still pending. The new
                run has already been finalized as a conflict failure and is
                available as ``error.run``.
        """
        now = utcnow()
        started_at = started_at or now
        self._close_abandoned_runs(now)

        run = self.store.create_sync_run(
            {"started_at": started_at, "status": SyncStatus.PENDING.value}
        )

        try:
            blocking = [
                other
                for other in self.store.get_pending_sync_runs()
                if other.id < run.id and not self._is_stale(other, now)
            ]
            if blocking:
                error = SyncInProgressError(run, blocking[0].id)
                error.run = self.finalize(
                    run,
                    SyncStatus.FAILED,
                    SyncCounters(),
                    error_message=str(error),
                    failure_kind=FailureKind.CONFLICT,
                )
                raise error
        except SyncInProgressError:
            raise
        except Exception as e:
            self._close_unstarted_run(run, e)
            raise

        logger.info("Started sync run %s", run.id)
        return run

    def _close_unstarted_run(self, run: SyncRun, error: Exception) -> None:
        """Fail a run whose start could not be completed.

        Otherwise the inserted row would stay pending and refuse every
        following run until it goes stale.
        """
        try:
            self.store.finish_pending_sync_run(
                run.id,
                {
                    "status": SyncStatus.FAILED.value,
                    "completed_at": utcnow(),
                    "error_message": f"Could not start sync: {error}",
                    "failure_kind": FailureKind.TRANSIENT.value,
                },
            )
        except Exception:
            logger.exception("Could not close sync run %s after failed start", run.id)

    def finalize(
        self,
        run: SyncRun,
        status: SyncStatus,
        counters: SyncCounters,
        error_message: Optional[str] = None,
        failure_kind: Optional[FailureKind] = None,
    ) -> SyncRun:
        """Move a pending run to its terminal status.

        Args:
            run: The run returned by create()
            status: COMPLETED or FAILED
            counters: Final (or partial, on failure) counters
            error_message: Failure detail, only stored for FAILED
            failure_kind: Failure classification, only stored for FAILED

        Returns:
            The finalized SyncRun

        Raises:
            ValueError: If status is not terminal
            SyncRunFinalizedError: If the run is not pending anymore
        """
        if status not in SyncStatus.terminal():
            raise ValueError(f"Cannot finalize a run as {status.value}")

        run_data: Dict[str, Any] = {
            "status": status.value,
            "completed_at": utcnow(),
            **counters.to_dict(),
        }
        if status == SyncStatus.FAILED:
            run_data["error_message"] = error_message or "Unknown error"
            run_data["failure_kind"] = (
                failure_kind or FailureKind.PERMANENT
            ).value

        finalized = self.store.finish_pending_sync_run(run.id, run_data)
        if finalized is None:
            current = self.store.get_sync_run(run.id)
            if current is None:
                raise ValueError(f"Sync run not found: {run.id}")
            raise SyncRunFinalizedError(
                f"Sync run {run.id} is already {current.status}"
            )

        logger.info(
            "Sync run %s %s (added=%d, updated=%d, removed=%d, processed=%d)",
            finalized.id,
            finalized.status,
            finalized.tracks_added,
            finalized.tracks_updated,
            finalized.tracks_removed,
            finalized.total_tracks_processed,
        )
        return finalized
