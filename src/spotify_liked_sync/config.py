"""Configuration management for the Spotify liked-tracks sync application."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file from config directory or project root
config_env = Path(__file__).parent.parent.parent / "config" / ".env"
if config_env.exists():
    load_dotenv(config_env)
else:
    load_dotenv()

# Spotify rejects saved-tracks requests with a larger limit
MAX_PAGE_SIZE = 50


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Spotify API settings
        self.access_token: Optional[str] = os.getenv(
            "SPOTIFY_LIKED_SYNC_ACCESS_TOKEN"
        ) or os.getenv("SPOTIFY_ACCESS_TOKEN")
        self.api_base_url = os.getenv(
            "SPOTIFY_LIKED_SYNC_API_BASE_URL", "https://api.spotify.com/v1"
        ).rstrip("/")
        self.request_timeout = float(
            os.getenv("SPOTIFY_LIKED_SYNC_REQUEST_TIMEOUT", "15")
        )

        # Reconciliation settings
        page_size = int(os.getenv("SPOTIFY_LIKED_SYNC_PAGE_SIZE", str(MAX_PAGE_SIZE)))
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self.stale_run_minutes = int(
            os.getenv("SPOTIFY_LIKED_SYNC_STALE_RUN_MINUTES", "60")
        )
        self.retract_on_empty = _env_bool("SPOTIFY_LIKED_SYNC_RETRACT_ON_EMPTY", False)

        # Database settings
        default_db_path = str(Path.home() / ".spotify-liked-sync" / "sync.db")
        self.database_path = Path(
            os.getenv("SPOTIFY_LIKED_SYNC_DATABASE_PATH", default_db_path)
        )

        # Logging
        log_file = os.getenv("SPOTIFY_LIKED_SYNC_LOG_FILE")
        self.log_file: Optional[Path] = Path(log_file) if log_file else None

        # Ensure directories exist
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Ensure required directories exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def get_config() -> Config:
    """Get application configuration."""
    return Config()
