"""Data models package."""

from .models import LikedTrackEntry, LikedTracksPage, parse_timestamp

__all__ = ["LikedTrackEntry", "LikedTracksPage", "parse_timestamp"]
