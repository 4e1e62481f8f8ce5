"""
Data structures for playlist entries and the tracks built from them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TrackState(Enum):
    """Lifecycle state of a track inside a registry."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PlaylistEntry:
    """A raw item as returned by a metadata source."""

    id: str
    title: str
    url: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlaylistEntry":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
        )


@dataclass(frozen=True)
class PlaylistPage:
    """One page of playlist metadata."""

    title: str
    estimated_total: int
    items: list[PlaylistEntry] = field(default_factory=list)
    has_more: bool = False
    next_page_token: Any = None


@dataclass(eq=False)
class Track:
    """
    One playlist entry tracked through its download lifecycle.

    Identity is the source id: it is fixed at construction and cannot be
    reassigned. State changes go through `TrackRegistry.transition`.
    """

    _id: str
    title: str
    source_locator: str
    file_stem: str
    position: int
    state: TrackState = TrackState.PENDING
    attempts: int = 0
    last_error: str | None = None

    @property
    def id(self) -> str:
        return self._id

    def __repr__(self) -> str:
        return f"Track(id={self._id!r}, title={self.title!r}, state={self.state.name})"
