"""
In-memory registry of every track discovered in a playlist, partitioned by
lifecycle state.
"""

import logging
from typing import Iterable, Iterator

from playlist_dl.exceptions import InvalidTransitionError
from playlist_dl.models.track import PlaylistEntry, Track, TrackState
from playlist_dl.utils.naming import track_file_stem

log = logging.getLogger(__name__)

# Allowed moves between states. COMPLETED -> COMPLETED is handled separately as
# an idempotent no-op; FAILED -> PENDING only happens through `retry`.
_TRANSITIONS = {
    TrackState.PENDING: {TrackState.ACTIVE, TrackState.COMPLETED},
    TrackState.ACTIVE: {TrackState.COMPLETED, TrackState.FAILED},
    TrackState.COMPLETED: set(),
    TrackState.FAILED: set(),
}


class TrackRegistry:
    """
    Holds every Track of one run, each in exactly one of four state buckets.

    The registry is the single source of truth for scheduling decisions. It is
    not thread-safe and is only touched from the coordinating task.
    """

    def __init__(self):
        self._tracks: dict[str, Track] = {}
        self._buckets: dict[TrackState, dict[str, Track]] = {
            state: {} for state in TrackState
        }
        self._stems: dict[str, str] = {}
        self._next_position = 0

    def seed(
        self,
        entries: Iterable[PlaylistEntry],
        completed_ids: Iterable[str] = (),
    ) -> list[Track]:
        """
        Creates tracks for entries not seen before, preserving source order.

        IDs found in `completed_ids` start out COMPLETED instead of PENDING.
        Returns only the newly created tracks.
        """
        completed = set(completed_ids)
        created = []
        for entry in entries:
            if entry.id in self._tracks:
                continue
            stem = track_file_stem(entry.title, entry.id, self._stems)
            state = (
                TrackState.COMPLETED if entry.id in completed else TrackState.PENDING
            )
            track = Track(
                entry.id,
                entry.title,
                entry.url,
                file_stem=stem,
                position=self._next_position,
                state=state,
            )
            self._next_position += 1
            self._tracks[track.id] = track
            self._buckets[state][track.id] = track
            self._stems[stem] = track.id
            created.append(track)
        return created

    def count_by_state(self, state: TrackState) -> int:
        return len(self._buckets[state])

    def next_pending(self) -> Track | None:
        """Returns the earliest-inserted pending track, or None."""
        return next(iter(self._buckets[TrackState.PENDING].values()), None)

    def transition(
        self, track: Track, new_state: TrackState, error: str | None = None
    ) -> None:
        """Moves a track to a new state, enforcing the lifecycle rules."""
        current = self._tracks.get(track.id)
        if current is not track:
            raise InvalidTransitionError(f"{track!r} does not belong to this registry.")

        if new_state is TrackState.COMPLETED and track.state is TrackState.COMPLETED:
            return
        if new_state is TrackState.FAILED and not error:
            raise InvalidTransitionError(
                f"Marking {track!r} as failed requires an error message."
            )
        if new_state not in _TRANSITIONS[track.state]:
            raise InvalidTransitionError(
                f"Cannot move {track!r} from {track.state.name} to {new_state.name}."
            )

        self._move(track, new_state)
        if new_state is TrackState.ACTIVE:
            track.attempts += 1
        track.last_error = error if new_state is TrackState.FAILED else None

    def retry(self, track: Track) -> None:
        """Returns a failed track to the pending pool, keeping its FIFO position."""
        owned = self._tracks.get(track.id) is track
        if not owned or track.state is not TrackState.FAILED:
            raise InvalidTransitionError(
                f"Only failed tracks can be retried: {track!r}"
            )
        self._move(track, TrackState.PENDING)
        track.last_error = None
        log.debug(f"Re-queued {track!r} for another attempt.")
        pending = self._buckets[TrackState.PENDING]
        ordered = sorted(pending.values(), key=lambda t: t.position)
        self._buckets[TrackState.PENDING] = {t.id: t for t in ordered}

    def _move(self, track: Track, new_state: TrackState) -> None:
        del self._buckets[track.state][track.id]
        self._buckets[new_state][track.id] = track
        track.state = new_state

    def tracks_in(self, state: TrackState) -> list[Track]:
        return list(self._buckets[state].values())

    def get(self, track_id: str) -> Track | None:
        return self._tracks.get(track_id)

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks.values())

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._tracks
