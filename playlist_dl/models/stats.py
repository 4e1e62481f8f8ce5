"""
Dataclass for tracking download session statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass
class DownloadStats:
    """Tracks statistics for a single run of the download queue."""

    tracks_downloaded: int = 0
    tracks_skipped_ledger: int = 0
    tracks_skipped_exists: int = 0
    tracks_failed: int = 0
    total_size_downloaded: int = 0
    sweeps: int = 0
    pages_fetched: int = 0
    peak_active: int = 0
    stopped: bool = False
    playlist_title: str = ""
    _start_time: float = field(default_factory=time.monotonic, repr=False)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start_time

    def record_active(self, active_count: int) -> None:
        self.peak_active = max(self.peak_active, active_count)

    def as_history_record(self) -> dict:
        """Returns the fields persisted to the session history file."""
        return {
            "timestamp": int(time.time()),
            "playlist": self.playlist_title,
            "tracks_downloaded": self.tracks_downloaded,
            "tracks_skipped_ledger": self.tracks_skipped_ledger,
            "tracks_skipped_exists": self.tracks_skipped_exists,
            "tracks_failed": self.tracks_failed,
            "total_size_downloaded": self.total_size_downloaded,
            "sweeps": self.sweeps,
            "peak_active": self.peak_active,
            "stopped": self.stopped,
            "duration_seconds": round(self.elapsed, 2),
        }
