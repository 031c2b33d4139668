"""Tests for liked-track entry parsing."""

from datetime import datetime

import pytest

from spotify_liked_sync.models import LikedTrackEntry, LikedTracksPage, parse_timestamp


class TestParseTimestamp:
    """Test parse_timestamp."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2024-01-01", datetime(2024, 1, 1)),
            ("2024-01-01T10:30:00Z", datetime(2024, 1, 1, 10, 30)),
            ("2024-01-01T10:30:00+02:00", datetime(2024, 1, 1, 8, 30)),
            ("2024-01-01T10:30:00", datetime(2024, 1, 1, 10, 30)),
        ],
    )
    def test_valid_timestamps(self, value, expected):
        """Test supported timestamp formats."""
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
    def test_invalid_timestamps(self, value):
        """Test unusable values become None."""
        assert parse_timestamp(value) is None


class TestLikedTrackEntry:
    """Test LikedTrackEntry."""

    def test_from_api_minimal_item(self):
        """Test an item with almost nothing in it still parses."""
        entry = LikedTrackEntry.from_api({"track": {"id": "t9"}})

        assert entry.spotify_id == "t9"
        assert entry.name == ""
        assert entry.artist_names == []
        assert entry.primary_artist is None
        assert entry.album_name is None
        assert entry.artwork_url is None
        assert entry.preview_url is None
        assert entry.duration_ms is None
        assert entry.external_url is None
        assert entry.added_at is None

    def test_from_api_without_track(self):
        """Test an item whose track is null has no identifier."""
        entry = LikedTrackEntry.from_api({"added_at": "2024-01-01", "track": None})
        assert entry.spotify_id is None
        assert entry.added_at == datetime(2024, 1, 1)

    def test_from_api_artists_and_images(self):
        """Test the first artist and the first image are exposed."""
        entry = LikedTrackEntry.from_api(
            {
                "added_at": "2024-03-05T00:00:00Z",
                "track": {
                    "id": "t1",
                    "name": "Duet",
                    "artists": [{"name": "First"}, {"name": "Second"}],
                    "album": {
                        "name": "LP",
                        "images": [{"url": "big.jpg"}, {"url": "small.jpg"}],
                    },
                },
            }
        )

        assert entry.artist_names == ["First", "Second"]
        assert entry.primary_artist == "First"
        assert entry.artwork_url == "big.jpg"
        assert entry.added_at == datetime(2024, 3, 5)

    def test_from_api_wrong_nested_types(self):
        """Test nested values of the wrong type are ignored."""
        entry = LikedTrackEntry.from_api(
            {
                "track": {
                    "id": "t1",
                    "album": "just-a-string",
                    "artists": "Somebody",
                    "external_urls": [],
                }
            }
        )

        assert entry.spotify_id == "t1"
        assert entry.album_name is None
        assert entry.artist_names == []
        assert entry.external_url is None

    @pytest.mark.parametrize("raw_id", ["", "   ", None])
    def test_blank_identifier(self, raw_id):
        """Test blank identifiers are treated as missing."""
        entry = LikedTrackEntry(spotify_id=raw_id)
        assert entry.spotify_id is None

    def test_numeric_identifier_is_stringified(self):
        """Test identifiers are always strings."""
        assert LikedTrackEntry(spotify_id=123).spotify_id == "123"

    @pytest.mark.parametrize("duration", [-5, "abc", True])
    def test_bad_duration(self, duration):
        """Test unusable durations are dropped."""
        assert LikedTrackEntry(spotify_id="t", duration_ms=duration).duration_ms is None

    def test_entry_is_immutable(self):
        """Test entries cannot be modified after parsing."""
        entry = LikedTrackEntry(spotify_id="t")
        with pytest.raises(Exception):
            entry.name = "changed"


class TestLikedTracksPage:
    """Test LikedTracksPage."""

    def test_defaults(self):
        """Test an empty page reports no further pages."""
        page = LikedTracksPage()
        assert page.items == []
        assert page.has_more is False
        assert page.count == 0
