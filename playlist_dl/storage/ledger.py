"""
Persists the set of track IDs whose audio is already on disk, so repeated runs
against the same output folder skip them.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from playlist_dl.exceptions import StorageError
from playlist_dl.models.config import DEFAULT_LEDGER_FILENAME
from playlist_dl.models.track import Track, TrackState

if TYPE_CHECKING:
    from playlist_dl.core.registry import TrackRegistry

log = logging.getLogger(__name__)


def load_ledger(path: Path) -> set[str]:
    """
    Reads a ledger file into a set of track IDs.

    A missing or unparsable ledger yields an empty set. Any other I/O failure
    raises StorageError.
    """
    try:
        with open(path, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        return set()
    except OSError as e:
        raise StorageError(f"Cannot read completion ledger '{path}': {e}") from e

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        log.warning(
            f"[yellow]Ignoring unreadable completion ledger '{path}': {e}[/yellow]"
        )
        return set()

    if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
        log.warning(
            f"[yellow]Ignoring malformed completion ledger '{path}' "
            "(expected a list of IDs).[/yellow]"
        )
        return set()
    return set(data)


def save_ledger(path: Path, track_ids: Iterable[str]) -> None:
    """
    Replaces the ledger file with the given IDs.

    The new contents are written to a sibling temporary file and renamed over
    the old one, so a crash mid-write leaves the previous ledger intact.
    """
    payload = json.dumps(sorted(track_ids), indent=2, ensure_ascii=False)
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise StorageError(f"Cannot write completion ledger '{path}': {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.remove(tmp_name)
            except OSError:
                pass


class CompletionLedger:
    """The completion ledger of one output folder, owned by a single run."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._ids: set[str] = set()

    @classmethod
    def in_folder(
        cls, folder: Path, filename: str = DEFAULT_LEDGER_FILENAME
    ) -> "CompletionLedger":
        return cls(Path(folder) / filename)

    def load(self) -> set[str]:
        self._ids = load_ledger(self.path)
        log.debug(f"Loaded {len(self._ids)} completed IDs from '{self.path}'.")
        return set(self._ids)

    def add(self, track_id: str) -> None:
        """Records a success and persists the whole set."""
        if track_id in self._ids:
            return
        self._ids.add(track_id)
        save_ledger(self.path, self._ids)

    def clear(self) -> None:
        self._ids = set()
        save_ledger(self.path, self._ids)

    @property
    def ids(self) -> set[str]:
        return set(self._ids)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


def reconcile_with_filesystem(
    folder: Path, registry: "TrackRegistry", extension: str
) -> list[Track]:
    """
    Marks pending tracks whose output file already exists as completed.

    Matching is by file stem against each track's assigned name. This is a
    best-effort detector for folders populated before a ledger existed; files
    that match nothing are ignored.
    """
    by_stem = {
        track.file_stem: track for track in registry.tracks_in(TrackState.PENDING)
    }
    if not by_stem:
        return []

    matched = []
    suffix = f".{extension.lower()}"
    try:
        candidates = sorted(p for p in folder.iterdir() if p.is_file())
    except OSError as e:
        raise StorageError(f"Cannot scan output folder '{folder}': {e}") from e

    for path in candidates:
        if path.suffix.lower() != suffix:
            continue
        track = by_stem.pop(path.stem, None)
        if track is None:
            continue
        registry.transition(track, TrackState.COMPLETED)
        matched.append(track)

    if matched:
        log.info(
            f"  [yellow]○ Found {len(matched)} tracks already present in "
            f"'{folder}'.[/yellow]"
        )
    return matched
