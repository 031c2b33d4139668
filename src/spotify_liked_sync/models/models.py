"""Data models for entries returned by the Spotify saved-tracks endpoint."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into a naive UTC datetime.

    Accepts full timestamps with a ``Z`` suffix or offset as well as bare
    dates. Anything unparseable becomes None rather than an error.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


class LikedTrackEntry(BaseModel):
    """One item of the user's liked tracks as delivered by Spotify.

    Every field is optional so that a partial entry can still be inspected;
    deciding what to do with missing data is left to the reconciler.
    """

    spotify_id: Optional[str] = None
    name: str = ""
    artist_names: List[str] = []
    album_name: Optional[str] = None
    image_urls: List[str] = []
    preview_url: Optional[str] = None
    duration_ms: Optional[int] = None
    external_url: Optional[str] = None
    added_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("spotify_id", mode="before")
    @classmethod
    def validate_spotify_id(cls, v: Any) -> Optional[str]:
        """Normalize blank identifiers to None."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> str:
        """Treat a missing title as empty."""
        return "" if v is None else str(v)

    @field_validator("duration_ms", mode="before")
    @classmethod
    def validate_duration(cls, v: Any) -> Optional[int]:
        """Drop negative or non-numeric durations."""
        if v is None or isinstance(v, bool):
            return None
        try:
            duration = int(v)
        except (TypeError, ValueError):
            return None
        return duration if duration >= 0 else None

    @field_validator("added_at", mode="before")
    @classmethod
    def validate_added_at(cls, v: Any) -> Optional[datetime]:
        """Parse Spotify's added_at timestamp."""
        return parse_timestamp(v)

    @property
    def primary_artist(self) -> Optional[str]:
        """First listed artist, if any."""
        return self.artist_names[0] if self.artist_names else None

    @property
    def artwork_url(self) -> Optional[str]:
        """First offered image (Spotify lists the largest first)."""
        return self.image_urls[0] if self.image_urls else None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "LikedTrackEntry":
        """Build an entry from a saved-track item of ``GET /me/tracks``.

        Args:
            item: Dictionary shaped like ``{"added_at": ..., "track": {...}}``

        Returns:
            LikedTrackEntry with whatever fields could be extracted
        """
        track = _as_dict(item.get("track"))
        album = _as_dict(track.get("album"))

        artist_names = [
            artist["name"]
            for artist in _as_list(track.get("artists"))
            if isinstance(artist, dict) and isinstance(artist.get("name"), str)
        ]
        image_urls = [
            image["url"]
            for image in _as_list(album.get("images"))
            if isinstance(image, dict) and isinstance(image.get("url"), str)
        ]

        return cls(
            spotify_id=track.get("id"),
            name=track.get("name"),
            artist_names=artist_names,
            album_name=album.get("name"),
            image_urls=image_urls,
            preview_url=track.get("preview_url"),
            duration_ms=track.get("duration_ms"),
            external_url=_as_dict(track.get("external_urls")).get("spotify"),
            added_at=item.get("added_at"),
        )


class LikedTracksPage(BaseModel):
    """One page of liked tracks."""

    items: List[LikedTrackEntry] = []
    has_more: bool = False
    total: Optional[int] = None

    @property
    def count(self) -> int:
        """Number of entries on this page."""
        return len(self.items)
