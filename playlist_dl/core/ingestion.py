"""
Paginated retrieval of playlist metadata, feeding new tracks into the registry
either all at once (bulk mode) or one page at a time interleaved with
scheduling (interleaved mode).
"""

import logging
from pathlib import Path
from typing import Any, AsyncGenerator, Protocol

from rich.markup import escape

from playlist_dl.models.stats import DownloadStats
from playlist_dl.models.track import PlaylistPage, Track, TrackState
from playlist_dl.storage.ledger import CompletionLedger, reconcile_with_filesystem

from .cancellation import CancellationToken
from .events import NullReporter, PlaylistLoaded, ProgressReporter
from .registry import TrackRegistry
from .scheduler import BoundedScheduler

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class MetadataSource(Protocol):
    async def fetch_page(
        self, playlist_ref: str, page_size: int, page_token: Any
    ) -> PlaylistPage: ...


class PlaylistIngestor:
    """
    Pulls playlist pages from a metadata source into a TrackRegistry.

    The playlist title and estimated total are captured from the first page
    for display only. The loop ends on an empty page or when the source
    reports no continuation; estimated counts are never used to stop it.
    """

    def __init__(
        self,
        source: MetadataSource,
        registry: TrackRegistry,
        ledger: CompletionLedger,
        reporter: ProgressReporter | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        cancel_token: CancellationToken | None = None,
        reconcile_dir: Path | None = None,
        extension: str = "mp3",
        stats: DownloadStats | None = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1.")
        self.source = source
        self.registry = registry
        self.ledger = ledger
        self.reporter = reporter or NullReporter()
        self.page_size = page_size
        self.cancel_token = cancel_token or CancellationToken()
        self.reconcile_dir = reconcile_dir
        self.extension = extension
        self.stats = stats or DownloadStats()
        self.title: str | None = None
        self.estimated_total = 0

    async def pages(self, playlist_ref: str) -> AsyncGenerator[PlaylistPage, None]:
        """Yields non-empty pages until the playlist ends or a stop is requested."""
        page_token = None
        page_number = 0
        while not self.cancel_token.stop_requested:
            page = await self.source.fetch_page(
                playlist_ref, self.page_size, page_token
            )
            page_number += 1
            self.stats.pages_fetched += 1

            if page_number == 1:
                self.title = page.title
                self.estimated_total = page.estimated_total
                self.stats.playlist_title = page.title
                log.debug(
                    f"Playlist '{page.title}' reports about {page.estimated_total} items."
                )

            if not page.items:
                log.debug(f"Page {page_number} is empty; playlist exhausted.")
                return

            yield page

            if not page.has_more:
                return
            page_token = page.next_page_token

    def seed_page(self, page: PlaylistPage) -> list[Track]:
        """Adds a page's entries to the registry and applies completion checks."""
        created = self.registry.seed(page.items, completed_ids=self.ledger.ids)
        from_ledger = sum(1 for t in created if t.state is TrackState.COMPLETED)
        self.stats.tracks_skipped_ledger += from_ledger

        if self.reconcile_dir is not None:
            found = reconcile_with_filesystem(
                self.reconcile_dir, self.registry, self.extension
            )
            self.stats.tracks_skipped_exists += len(found)

        if from_ledger:
            log.info(
                f"  [yellow]○ Skipped {from_ledger} tracks (already in ledger).[/yellow]"
            )
        return created

    async def ingest_all(self, playlist_ref: str) -> PlaylistLoaded:
        """
        Bulk mode: enumerates the whole playlist before any download starts.
        """
        async for page in self.pages(playlist_ref):
            self.seed_page(page)
            log.debug(f"Ingested {len(self.registry)} tracks so far.")
        return self._announce(total=len(self.registry))

    async def ingest_interleaved(
        self, playlist_ref: str, scheduler: BoundedScheduler
    ) -> PlaylistLoaded:
        """
        Interleaved mode: alternates fetching one page with draining that
        page's tracks through the scheduler.
        """
        loaded = None
        page_number = 0
        async for page in self.pages(playlist_ref):
            page_number += 1
            self.seed_page(page)
            if loaded is None:
                total = self.estimated_total if page.has_more else len(self.registry)
                loaded = self._announce(total=max(total, len(self.registry)))
            log.info(f"Processing batch {page_number}...")
            await scheduler.run()

        if loaded is None:
            loaded = self._announce(total=0)
        return loaded

    def _announce(self, total: int) -> PlaylistLoaded:
        event = PlaylistLoaded(
            title=self.title or "",
            total=total,
            pending=self.registry.count_by_state(TrackState.PENDING),
        )
        log.debug(f"Loaded playlist {escape(event.title)!r}: {event}")
        self.reporter.report(event)
        return event
