"""Tests for the sync run ledger."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from spotify_liked_sync.core.sync import (
    SyncCounters,
    SyncInProgressError,
    SyncRunFinalizedError,
    SyncRunLedger,
)
from spotify_liked_sync.database import DatabaseService, FailureKind, SyncStatus
from spotify_liked_sync.database.models import utcnow


class FlakyPendingStore(DatabaseService):
    """Database service whose pending-run query fails on a chosen call."""

    def __init__(self, db_path, fail_on_call):
        super().__init__(db_path)
        self.fail_on_call = fail_on_call
        self.calls = 0

    def get_pending_sync_runs(self):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise OperationalError("SELECT", {}, Exception("database is locked"))
        return super().get_pending_sync_runs()


@pytest.fixture
def db_service(tmp_path):
    """Create a temporary database service for testing."""
    service = DatabaseService(db_path=tmp_path / "ledger.db")
    yield service
    service.close()


@pytest.fixture
def ledger(db_service):
    """Create a SyncRunLedger backed by the test database."""
    return SyncRunLedger(db_service)


class TestSyncCounters:
    """Test SyncCounters."""

    def test_to_dict(self):
        """Test counters convert to run columns."""
        counters = SyncCounters(tracks_added=2, total_tracks_processed=2)
        assert counters.to_dict() == {
            "tracks_added": 2,
            "tracks_updated": 0,
            "tracks_removed": 0,
            "tracks_skipped": 0,
            "total_tracks_processed": 2,
        }


class TestCreate:
    """Test opening runs."""

    def test_create_pending_run(self, ledger, db_service):
        """Test a new run is persisted as pending."""
        run = ledger.create()

        assert run.id is not None
        assert run.status == SyncStatus.PENDING.value
        assert run.started_at is not None
        assert run.completed_at is None
        assert [r.id for r in db_service.get_pending_sync_runs()] == [run.id]

    def test_create_uses_given_start_time(self, ledger):
        """Test the caller's start time is recorded."""
        started = utcnow() - timedelta(seconds=5)
        run = ledger.create(started)
        assert run.started_at == started

    def test_second_run_is_refused_while_pending(self, ledger, db_service):
        """Test only one run may be pending at a time."""
        first = ledger.create()

        with pytest.raises(SyncInProgressError) as exc_info:
            ledger.create()

        refused = exc_info.value.run
        assert exc_info.value.blocking_run_id == first.id
        assert refused.id != first.id
        assert refused.status == SyncStatus.FAILED.value
        assert refused.failure_kind == FailureKind.CONFLICT.value
        assert "already in progress" in refused.error_message
        assert refused.completed_at is not None
        # The first run is untouched
        assert db_service.get_sync_run(first.id).status == SyncStatus.PENDING.value

    def test_new_run_allowed_after_previous_finished(self, ledger):
        """Test a finished run does not block the next one."""
        first = ledger.create()
        ledger.finalize(first, SyncStatus.COMPLETED, SyncCounters())

        second = ledger.create()
        assert second.status == SyncStatus.PENDING.value

    def test_stale_pending_run_is_abandoned(self, db_service):
        """Test a pending run older than stale_after no longer blocks."""
        ledger = SyncRunLedger(db_service, stale_after=timedelta(minutes=30))
        old = db_service.create_sync_run(
            {
                "started_at": utcnow() - timedelta(hours=2),
                "status": SyncStatus.PENDING.value,
            }
        )

        run = ledger.create()

        assert run.status == SyncStatus.PENDING.value
        abandoned = db_service.get_sync_run(old.id)
        assert abandoned.status == SyncStatus.FAILED.value
        assert abandoned.failure_kind == FailureKind.TRANSIENT.value
        assert "abandoned" in abandoned.error_message

    def test_failed_check_does_not_leave_pending_run(self, tmp_path):
        """Test a run whose start fails half-way is closed, not left pending."""
        store = FlakyPendingStore(tmp_path / "flaky.db", fail_on_call=2)
        ledger = SyncRunLedger(store)
        try:
            with pytest.raises(OperationalError):
                ledger.create()

            assert store.get_pending_sync_runs() == []
            orphan = store.get_latest_sync_run()
            assert orphan.status == SyncStatus.FAILED.value
            assert orphan.failure_kind == FailureKind.TRANSIENT.value
            assert "database is locked" in orphan.error_message
            assert orphan.completed_at is not None

            # The next run is not refused as a conflict
            run = ledger.create()
            assert run.status == SyncStatus.PENDING.value
        finally:
            store.close()


class TestFinalize:
    """Test closing runs."""

    def test_finalize_completed(self, ledger):
        """Test completing a run stores counters and completion time."""
        run = ledger.create()
        counters = SyncCounters(
            tracks_added=3,
            tracks_updated=4,
            tracks_removed=1,
            total_tracks_processed=7,
        )

        finalized = ledger.finalize(run, SyncStatus.COMPLETED, counters)

        assert finalized.status == SyncStatus.COMPLETED.value
        assert finalized.tracks_added == 3
        assert finalized.tracks_updated == 4
        assert finalized.tracks_removed == 1
        assert finalized.total_tracks_processed == 7
        assert finalized.completed_at is not None
        assert finalized.duration_seconds >= 0
        assert finalized.error_message is None
        assert finalized.failure_kind is None

    def test_completed_run_ignores_error_detail(self, ledger):
        """Test error fields are only stored for failed runs."""
        run = ledger.create()
        finalized = ledger.finalize(
            run,
            SyncStatus.COMPLETED,
            SyncCounters(),
            error_message="ignored",
            failure_kind=FailureKind.TRANSIENT,
        )
        assert finalized.error_message is None
        assert finalized.failure_kind is None

    def test_finalize_failed(self, ledger):
        """Test failing a run keeps partial counters and the error."""
        run = ledger.create()

        finalized = ledger.finalize(
            run,
            SyncStatus.FAILED,
            SyncCounters(tracks_added=1, total_tracks_processed=1),
            error_message="Spotify API error 502",
            failure_kind=FailureKind.TRANSIENT,
        )

        assert finalized.status == SyncStatus.FAILED.value
        assert finalized.tracks_added == 1
        assert finalized.error_message == "Spotify API error 502"
        assert finalized.failure_kind == FailureKind.TRANSIENT.value

    def test_failed_defaults(self, ledger):
        """Test a failure without detail still gets a message and kind."""
        run = ledger.create()
        finalized = ledger.finalize(run, SyncStatus.FAILED, SyncCounters())
        assert finalized.error_message == "Unknown error"
        assert finalized.failure_kind == FailureKind.PERMANENT.value

    def test_finalize_only_once(self, ledger):
        """Test a run cannot be finalized twice."""
        run = ledger.create()
        ledger.finalize(run, SyncStatus.COMPLETED, SyncCounters())

        with pytest.raises(SyncRunFinalizedError):
            ledger.finalize(run, SyncStatus.FAILED, SyncCounters())

    def test_finalize_with_stale_copy_is_refused(self, ledger, db_service):
        """Test finalizing through an outdated run object cannot overwrite."""
        run = ledger.create()
        stale_copy = db_service.get_sync_run(run.id)
        ledger.finalize(run, SyncStatus.COMPLETED, SyncCounters(tracks_added=1))

        with pytest.raises(SyncRunFinalizedError):
            ledger.finalize(stale_copy, SyncStatus.FAILED, SyncCounters())

        stored = db_service.get_sync_run(run.id)
        assert stored.status == SyncStatus.COMPLETED.value
        assert stored.tracks_added == 1

    def test_finalize_missing_run(self, ledger, db_service):
        """Test finalizing a run that was never stored."""
        run = ledger.create()
        run.id = 9999
        with pytest.raises(ValueError, match="Sync run not found"):
            ledger.finalize(run, SyncStatus.COMPLETED, SyncCounters())

    def test_finalize_requires_terminal_status(self, ledger):
        """Test pending is not a valid final status."""
        run = ledger.create()
        with pytest.raises(ValueError):
            ledger.finalize(run, SyncStatus.PENDING, SyncCounters())
