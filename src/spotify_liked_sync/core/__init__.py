"""Core sync logic: Spotify access and liked-track reconciliation."""
