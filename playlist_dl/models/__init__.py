"""
Data Models Layer.

This package contains the data structures used throughout the application,
such as configuration, tracks and statistics.
"""

from .config import DownloadConfig
from .stats import DownloadStats
from .track import PlaylistEntry, PlaylistPage, Track, TrackState

__all__ = [
    "DownloadConfig",
    "DownloadStats",
    "PlaylistEntry",
    "PlaylistPage",
    "Track",
    "TrackState",
]
