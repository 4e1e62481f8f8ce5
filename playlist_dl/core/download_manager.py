"""
The run orchestrator: loads the ledger, ingests the playlist and drives the
scheduler, reporting progress to an observer.
"""

import json
import logging
from pathlib import Path

from playlist_dl.exceptions import StorageError
from playlist_dl.models.config import DownloadConfig
from playlist_dl.models.stats import DownloadStats
from playlist_dl.models.track import TrackState
from playlist_dl.storage.ledger import CompletionLedger
from playlist_dl.utils.path import create_dir
from playlist_dl.utils.playlist import generate_m3u

from .cancellation import CancellationToken
from .events import NullReporter, ProgressReporter, RunComplete, RunError
from .ingestion import MetadataSource, PlaylistIngestor
from .registry import TrackRegistry
from .scheduler import BoundedScheduler, Converter

log = logging.getLogger(__name__)

STOPPED_MESSAGE = "Download stopped by user."


class DownloadSession:
    """
    Owns everything one run needs: registry, ledger, scheduler and stop token.

    Sessions share no state, so several can run side by side against
    different playlists and output folders.
    """

    def __init__(
        self,
        config: DownloadConfig,
        source: MetadataSource,
        converter: Converter,
        reporter: ProgressReporter | None = None,
    ):
        self.config = config
        self.source = source
        self.converter = converter
        self.reporter = reporter or NullReporter()
        self.output_dir = Path(config.output_dir).expanduser()
        self.registry = TrackRegistry()
        self.ledger = CompletionLedger.in_folder(
            self.output_dir, config.ledger_filename
        )
        self.stats = DownloadStats()
        self.cancel_token = CancellationToken()
        self._running = False
        self._finished = False

    @property
    def running(self) -> bool:
        return self._running

    def stop(self, abort_in_flight: bool = False) -> None:
        """
        Requests the run to stop starting new downloads. Safe to call at any
        time; does nothing when no run is in progress.
        """
        if not self._running:
            log.debug("Stop requested while no download is running; ignoring.")
            return
        if not self.cancel_token.stop_requested:
            log.warning(
                "[yellow]⚠️  Stopping after the downloads in progress finish...[/yellow]"
            )
        self.cancel_token.request_stop(abort_in_flight=abort_in_flight)

    async def start(self, playlist_ref: str) -> DownloadStats:
        """Runs the whole pipeline for one playlist and returns its statistics."""
        if self._running or self._finished:
            raise RuntimeError("A DownloadSession can only be started once.")
        self._running = True
        try:
            return await self._run(playlist_ref)
        finally:
            self._running = False
            self._finished = True

    async def _run(self, playlist_ref: str) -> DownloadStats:
        config = self.config
        try:
            try:
                create_dir(self.output_dir)
            except OSError as e:
                raise StorageError(
                    f"Cannot create output folder '{self.output_dir}': {e}"
                ) from e
            self.ledger.load()

            scheduler = BoundedScheduler(
                self.registry,
                self.converter,
                self.ledger,
                output_dir=self.output_dir,
                extension=config.audio_format,
                reporter=self.reporter,
                max_concurrent=config.max_workers,
                strategy=config.strategy,
                cancel_token=self.cancel_token,
                stats=self.stats,
            )
            ingestor = PlaylistIngestor(
                self.source,
                self.registry,
                self.ledger,
                reporter=self.reporter,
                page_size=config.batch_size,
                cancel_token=self.cancel_token,
                reconcile_dir=self.output_dir if config.reconcile_existing else None,
                extension=config.audio_format,
                stats=self.stats,
            )

            log.info("Fetching playlist metadata...")
            if config.mode == "interleaved":
                await ingestor.ingest_interleaved(playlist_ref, scheduler)
            else:
                await ingestor.ingest_all(playlist_ref)
                await scheduler.run()
        except Exception as e:
            self.reporter.report(RunError(message=f"Error: {e}"))
            raise

        if self.cancel_token.stop_requested:
            self.stats.stopped = True
            self.reporter.report(RunError(message=STOPPED_MESSAGE))
            return self.stats

        if not config.no_m3u:
            self._write_m3u()
        self.reporter.report(RunComplete())
        return self.stats

    def _write_m3u(self) -> None:
        tracks = self.registry.tracks_in(TrackState.COMPLETED)
        if not tracks:
            return
        tracks.sort(key=lambda t: t.position)
        extension = self.config.audio_format
        paths = [self.output_dir / f"{t.file_stem}.{extension}" for t in tracks]
        name = self.stats.playlist_title or self.output_dir.name
        generate_m3u(self.output_dir, name, [p for p in paths if p.is_file()])

    def save_session_stats(self, history_dir: Path) -> None:
        """Appends this run's statistics to a JSON-lines history file."""
        stats_file = Path(history_dir) / "session_history.jsonl"
        try:
            create_dir(stats_file.parent)
            with open(stats_file, "a", encoding="utf-8") as f:
                json.dump(self.stats.as_history_record(), f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")
