"""
Renders run progress events as a Rich progress display.
"""

import asyncio
import logging
from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from playlist_dl.core.events import (
    PlaylistLoaded,
    ProgressEvent,
    ProgressReporter,
    RunComplete,
    RunError,
    SweepProgress,
)
from playlist_dl.utils.formatting import shorten

log = logging.getLogger("playlist_dl")


class ProgressManager(ProgressReporter):
    """
    A reporter that keeps an overall progress bar in sync with the scheduler.

    Log lines printed through the shared console appear above the bar.
    """

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            "•",
            TextColumn("[cyan]{task.fields[active]}[/] active"),
            "•",
            TextColumn("[red]{task.fields[failed]}[/] failed"),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None
        self._stats: dict[str, Any] = {
            "total_tracks": 0,
            "completed": 0,
            "failed": 0,
            "pending": 0,
            "peak_concurrent": 0,
            "last_error": None,
        }

    def report(self, event: ProgressEvent) -> None:
        if isinstance(event, PlaylistLoaded):
            self._on_loaded(event)
        elif isinstance(event, SweepProgress):
            self._on_progress(event)
        elif isinstance(event, RunError):
            self._stats["last_error"] = event.message
        elif isinstance(event, RunComplete):
            self._finish()

    def _on_loaded(self, event: PlaylistLoaded) -> None:
        self._stats["total_tracks"] = event.total
        self._stats["pending"] = event.pending
        log.info(
            f"[bold green]🎵 Playlist:[/] {event.title or 'Untitled'} "
            f"([cyan]{event.total}[/] tracks, [cyan]{event.pending}[/] to download)"
        )
        if self.quiet:
            return
        description = shorten(event.title or "Playlist", 40)
        if self._task_id is None:
            self._task_id = self.progress.add_task(
                description,
                total=event.total or None,
                completed=event.total - event.pending,
                active=0,
                failed=0,
            )
        else:
            self.progress.update(self._task_id, description=description)

    def _on_progress(self, event: SweepProgress) -> None:
        self._stats.update(
            total_tracks=event.total,
            completed=event.completed,
            failed=event.failed,
            pending=event.pending,
        )
        self._stats["peak_concurrent"] = max(
            self._stats["peak_concurrent"], event.active
        )
        if self.quiet or self._task_id is None:
            return
        self.progress.update(
            self._task_id,
            total=max(event.total, 1),
            completed=event.completed + event.failed,
            active=event.active,
            failed=event.failed,
        )

    def _finish(self) -> None:
        if self._task_id is not None and not self.quiet:
            total = self._stats["total_tracks"]
            self.progress.update(self._task_id, total=max(total, 1), completed=total)

    def get_statistics(self) -> dict:
        return self._stats.copy()

    async def __aenter__(self):
        if not self.quiet:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if not self.quiet:
            await asyncio.sleep(0.1)
            self.progress.stop()
