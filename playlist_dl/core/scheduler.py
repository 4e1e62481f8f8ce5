"""
Bounded-concurrency scheduler that drives pending tracks through the
conversion operation and reconciles the results into the registry.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Protocol

from rich.markup import escape

from playlist_dl.exceptions import StorageError
from playlist_dl.models.stats import DownloadStats
from playlist_dl.models.track import Track, TrackState
from playlist_dl.storage.ledger import CompletionLedger

from .cancellation import CancellationToken
from .events import NullReporter, ProgressReporter, SweepProgress
from .registry import TrackRegistry

log = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 5
STRATEGIES = ("sweep", "pipelined")

# Result of one conversion: None on success, an error message on an ordinary
# failure, or an exception that has to end the run.
Outcome = str | BaseException | None


class Converter(Protocol):
    async def convert(
        self,
        source_locator: str,
        destination: Path,
        cancel_token: CancellationToken,
    ) -> None: ...


class BoundedScheduler:
    """
    Runs at most `max_concurrent` conversions at once, dispatching pending
    tracks in FIFO order.

    With the default "sweep" strategy each round fills the active window,
    waits for every dispatched conversion to settle and then reports. The
    "pipelined" strategy refills a slot as soon as any conversion settles.
    Both keep the same order, bound and per-track isolation.
    """

    def __init__(
        self,
        registry: TrackRegistry,
        converter: Converter,
        ledger: CompletionLedger,
        output_dir: Path,
        extension: str,
        reporter: ProgressReporter | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        strategy: str = "sweep",
        cancel_token: CancellationToken | None = None,
        stats: DownloadStats | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1.")
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown scheduling strategy: {strategy!r}")
        self.registry = registry
        self.converter = converter
        self.ledger = ledger
        self.output_dir = Path(output_dir)
        self.extension = extension
        self.reporter = reporter or NullReporter()
        self.max_concurrent = max_concurrent
        self.strategy = strategy
        self.cancel_token = cancel_token or CancellationToken()
        self.stats = stats or DownloadStats()
        self._active: list[Track] = []

    @property
    def active(self) -> list[Track]:
        return list(self._active)

    def destination_for(self, track: Track) -> Path:
        return self.output_dir / f"{track.file_stem}.{self.extension}"

    async def run(self) -> None:
        """Drives every pending track to COMPLETED or FAILED, or until stopped."""
        if self.strategy == "pipelined":
            await self._run_pipelined()
        else:
            await self._run_sweeps()

    async def _run_sweeps(self) -> None:
        while True:
            started, skipped = self._fill()
            if not started:
                if skipped:
                    self._report()
                break

            in_flight = {
                asyncio.create_task(self._convert(track)): track for track in started
            }
            try:
                await asyncio.wait(in_flight)
            except asyncio.CancelledError:
                await self._drain(in_flight)
                raise

            fatal = self._reconcile(
                (track, self._outcome(task)) for task, track in in_flight.items()
            )
            self._report()
            if fatal is not None:
                raise fatal

    async def _run_pipelined(self) -> None:
        in_flight: dict[asyncio.Task, Track] = {}
        persist = True
        try:
            while True:
                started, skipped = self._fill()
                for track in started:
                    in_flight[asyncio.create_task(self._convert(track))] = track
                if not in_flight:
                    if skipped:
                        self._report()
                    break

                done, _ = await asyncio.wait(
                    in_flight, return_when=asyncio.FIRST_COMPLETED
                )
                settled = sorted(
                    ((in_flight.pop(task), self._outcome(task)) for task in done),
                    key=lambda pair: pair[0].position,
                )
                fatal = self._reconcile(settled)
                self._report()
                if fatal is not None:
                    raise fatal
        except StorageError:
            # The ledger can no longer be trusted.
            persist = False
            raise
        finally:
            if in_flight:
                await self._drain(in_flight, persist=persist)

    async def _drain(
        self, in_flight: dict[asyncio.Task, Track], persist: bool = True
    ) -> None:
        """Aborts the conversions still running, awaits them and settles them."""
        self.cancel_token.request_stop(abort_in_flight=True)
        tasks = list(in_flight)
        results = await asyncio.gather(*tasks, return_exceptions=True)
        fatal = self._reconcile(
            ((in_flight[task], result) for task, result in zip(tasks, results)),
            persist=persist,
        )
        if fatal is not None:
            log.error(
                f"[red]Could not record interrupted conversions:[/red] "
                f"{escape(str(fatal))}"
            )

    def _fill(self) -> tuple[list[Track], int]:
        """
        Promotes pending tracks into the active window until it is full.

        Tracks already recorded in the ledger are completed without dispatch.
        Returns the newly activated tracks and the number skipped.
        """
        started = []
        skipped = 0
        while (
            len(self._active) < self.max_concurrent
            and not self.cancel_token.stop_requested
        ):
            track = self.registry.next_pending()
            if track is None:
                break
            if track.id in self.ledger:
                self.registry.transition(track, TrackState.COMPLETED)
                self.stats.tracks_skipped_ledger += 1
                skipped += 1
                continue
            self.registry.transition(track, TrackState.ACTIVE)
            self._active.append(track)
            started.append(track)
        self.stats.record_active(len(self._active))
        return started, skipped

    async def _convert(self, track: Track) -> Outcome:
        destination = self.destination_for(track)
        log.info(f"  [cyan]↓ Downloading:[/] {escape(track.title)}")
        log.debug(f"    URL: {track.source_locator}")
        try:
            await self.converter.convert(
                track.source_locator, destination, self.cancel_token
            )
        except StorageError:
            raise
        except Exception as e:
            return str(e) or type(e).__name__
        return None

    @staticmethod
    def _outcome(task: asyncio.Task) -> Outcome:
        if task.cancelled():
            return asyncio.CancelledError()
        return task.exception() or task.result()

    def _reconcile(
        self, settled: Iterable[tuple[Track, Outcome]], persist: bool = True
    ) -> BaseException | None:
        """
        Applies conversion results to the registry and ledger.

        Returns the first fatal error encountered, after every settled track
        has been moved out of the active window.
        """
        fatal = None
        for track, result in settled:
            self._active.remove(track)

            if result is None:
                self.registry.transition(track, TrackState.COMPLETED)
                self.stats.tracks_downloaded += 1
                self._record_size(track)
                log.info(f"  [green]✓ Completed:[/] {escape(track.title)}")
                if persist and fatal is None:
                    try:
                        self.ledger.add(track.id)
                    except StorageError as e:
                        fatal = e
                continue

            if isinstance(result, str):
                message = result
            elif isinstance(result, (Exception, asyncio.CancelledError)):
                message = str(result) or type(result).__name__
                if isinstance(result, StorageError) and fatal is None:
                    fatal = result
            else:
                raise result

            self.registry.transition(track, TrackState.FAILED, error=message)
            self.stats.tracks_failed += 1
            log.error(f"  [red]✗ Failed:[/] {escape(track.title)} ({escape(message)})")
        return fatal

    def _record_size(self, track: Track) -> None:
        try:
            size = self.destination_for(track).stat().st_size
        except OSError:
            return
        self.stats.total_size_downloaded += size

    def _report(self) -> None:
        self.stats.sweeps += 1
        registry = self.registry
        self.reporter.report(
            SweepProgress(
                completed=registry.count_by_state(TrackState.COMPLETED),
                active=len(self._active),
                pending=registry.count_by_state(TrackState.PENDING),
                total=len(registry),
                failed=registry.count_by_state(TrackState.FAILED),
            )
        )
