"""Concurrent, resumable audio downloader for paginated media playlists."""

__version__ = "0.3.0"
