"""
Progress events emitted during a run, and the observer interface that receives
them.
"""

from dataclasses import asdict, dataclass
from typing import Any, Callable, ClassVar


@dataclass(frozen=True)
class ProgressEvent:
    type: ClassVar[str] = "event"

    def as_dict(self) -> dict[str, Any]:
        return {"type": self.type, **asdict(self)}


@dataclass(frozen=True)
class PlaylistLoaded(ProgressEvent):
    """Emitted once after the first page of playlist metadata is known."""

    type: ClassVar[str] = "loaded"
    title: str
    total: int
    pending: int


@dataclass(frozen=True)
class SweepProgress(ProgressEvent):
    """Emitted after every scheduler sweep."""

    type: ClassVar[str] = "progress"
    completed: int
    active: int
    pending: int
    total: int
    failed: int = 0


@dataclass(frozen=True)
class RunComplete(ProgressEvent):
    type: ClassVar[str] = "complete"


@dataclass(frozen=True)
class RunError(ProgressEvent):
    """Emitted once when a run ends on a fatal error or a user stop."""

    type: ClassVar[str] = "error"
    message: str


class ProgressReporter:
    """
    One-way observer of a run. Return values are ignored and the run never
    depends on what a reporter does, so the base class doubles as a no-op.
    """

    def report(self, event: ProgressEvent) -> None:
        pass


NullReporter = ProgressReporter


class CallbackReporter(ProgressReporter):
    """Forwards each event as a plain dict, e.g. to a UI message channel."""

    def __init__(self, callback: Callable[[dict[str, Any]], Any]):
        self.callback = callback

    def report(self, event: ProgressEvent) -> None:
        self.callback(event.as_dict())


class FanOutReporter(ProgressReporter):
    """Delivers every event to several reporters in order."""

    def __init__(self, *reporters: ProgressReporter):
        self.reporters: list[ProgressReporter] = list(reporters)

    def report(self, event: ProgressEvent) -> None:
        for reporter in self.reporters:
            reporter.report(event)

