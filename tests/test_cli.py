"""Tests for the command-line interface."""

import logging
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from spotify_liked_sync.cli import cli
from spotify_liked_sync.core.spotify import SpotifyApiError
from spotify_liked_sync.database import DatabaseService, SyncStatus
from spotify_liked_sync.models import LikedTrackEntry, LikedTracksPage


class FakeClient:
    """Stand-in for SpotifyClient serving a single page."""

    def __init__(self, token, base_url=None, timeout=None, error=None):
        self.token = token
        self.error = error
        self.closed = False

    def fetch_liked_page(self, offset, limit):
        if self.error:
            raise self.error
        return LikedTracksPage(
            items=[LikedTrackEntry(spotify_id="t1", name="Song", artist_names=["X"])]
        )

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the root logger changes made by the CLI."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    app_levels = {
        name: logging.getLogger(name).level
        for name in list(logging.root.manager.loggerDict)
        if name.startswith("spotify_liked_sync")
    }
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith("spotify_liked_sync"):
            logging.getLogger(name).setLevel(app_levels.get(name, logging.NOTSET))


@pytest.fixture
def db_path(monkeypatch, tmp_path):
    """Point the CLI at a temporary database without a token."""
    path = tmp_path / "cli.db"
    monkeypatch.setenv("SPOTIFY_LIKED_SYNC_DATABASE_PATH", str(path))
    monkeypatch.delenv("SPOTIFY_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("SPOTIFY_LIKED_SYNC_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("SPOTIFY_LIKED_SYNC_LOG_FILE", raising=False)
    return path


@pytest.fixture
def runner():
    """Create a click test runner."""
    return CliRunner()


def test_history_empty(runner, db_path):
    """Test history on a fresh database."""
    result = runner.invoke(cli, ["history"])

    assert result.exit_code == 0
    assert "No sync runs recorded yet" in result.output


def test_sync_without_token(runner, db_path):
    """Test sync refuses to run without credentials."""
    result = runner.invoke(cli, ["sync"])

    assert result.exit_code == 2
    assert "No Spotify access token" in result.output


def test_sync_success(runner, db_path):
    """Test a successful sync is stored and shown."""
    with patch("spotify_liked_sync.cli.main.SpotifyClient", FakeClient):
        result = runner.invoke(cli, ["sync", "--token", "tok"])

    assert result.exit_code == 0, result.output
    assert "Sync completed successfully" in result.output

    db_service = DatabaseService(db_path)
    try:
        run = db_service.get_latest_sync_run()
        assert run.status == SyncStatus.COMPLETED.value
        assert run.tracks_added == 1
        assert db_service.get_track_by_spotify_id("t1").artist == "X"
    finally:
        db_service.close()

    history = runner.invoke(cli, ["history"])
    assert history.exit_code == 0
    assert "1 liked tracks, 0 no longer liked" in history.output


def test_sync_failure_exit_code(runner, db_path):
    """Test a failed sync exits non-zero and shows the error."""

    def failing_client(token, **kwargs):
        return FakeClient(
            token, error=SpotifyApiError("The access token expired", 401)
        )

    with patch("spotify_liked_sync.cli.main.SpotifyClient", failing_client):
        result = runner.invoke(cli, ["sync", "--token", "tok"])

    assert result.exit_code == 1
    assert "The access token expired" in result.output
    assert "permanent" in result.output


def test_sync_prefers_app_specific_token(runner, db_path, monkeypatch):
    """Test the app-specific token env var wins over the generic one."""
    monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "generic")
    monkeypatch.setenv("SPOTIFY_LIKED_SYNC_ACCESS_TOKEN", "specific")
    clients = []

    def recording_client(token, **kwargs):
        client = FakeClient(token)
        clients.append(client)
        return client

    with patch("spotify_liked_sync.cli.main.SpotifyClient", recording_client):
        result = runner.invoke(cli, ["sync"])

    assert result.exit_code == 0, result.output
    assert [client.token for client in clients] == ["specific"]
    assert clients[0].closed


def test_sync_log_level_option(runner, db_path):
    """Test sync --log-level adjusts application loggers."""
    app_logger = logging.getLogger("spotify_liked_sync.core.sync.reconciler")
    original_level = app_logger.level
    try:
        with patch("spotify_liked_sync.cli.main.SpotifyClient", FakeClient):
            result = runner.invoke(
                cli, ["sync", "--token", "tok", "--log-level", "WARNING"]
            )

        assert result.exit_code == 0, result.output
        assert app_logger.level == logging.WARNING
    finally:
        app_logger.setLevel(original_level)


def test_log_file_option(runner, db_path, tmp_path):
    """Test --log-file writes application logs to disk."""
    log_file = tmp_path / "logs" / "sync.log"

    result = runner.invoke(cli, ["--log-file", str(log_file), "history"])

    assert result.exit_code == 0
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "Logging initialized" in log_file.read_text()
