"""Spotify API access."""

from .client import SpotifyApiError, SpotifyClient, TokenProvider

__all__ = ["SpotifyApiError", "SpotifyClient", "TokenProvider"]
