import asyncio

from fakes import FakeConverter, FakeSource, RecordingReporter, make_entries
from playlist_dl.core.ingestion import PlaylistIngestor
from playlist_dl.core.registry import TrackRegistry
from playlist_dl.core.scheduler import BoundedScheduler
from playlist_dl.models.track import PlaylistPage, TrackState
from playlist_dl.storage.ledger import CompletionLedger


def _ingestor(tmp_path, source, **kwargs):
    registry = TrackRegistry()
    ledger = CompletionLedger.in_folder(tmp_path)
    reporter = RecordingReporter()
    ingestor = PlaylistIngestor(source, registry, ledger, reporter=reporter, **kwargs)
    return ingestor, registry, ledger, reporter


def test_bulk_ingest_reads_every_page(tmp_path) -> None:
    source = FakeSource(make_entries(*"abcdefg"), estimated_total=99)
    ingestor, registry, _, reporter = _ingestor(tmp_path, source, page_size=3)

    loaded = asyncio.run(ingestor.ingest_all("ref"))

    assert [t.id for t in registry] == list("abcdefg")
    assert source.calls == [None, 3, 6]
    assert loaded.total == 7
    assert loaded.pending == 7
    assert loaded.title == "Mix"
    assert reporter.types == ["loaded"]


def test_empty_playlist_announces_zero(tmp_path) -> None:
    ingestor, registry, _, reporter = _ingestor(tmp_path, FakeSource([]))

    loaded = asyncio.run(ingestor.ingest_all("ref"))

    assert len(registry) == 0
    assert loaded.total == 0
    assert reporter.types == ["loaded"]


class _LyingSource:
    """Claims more pages exist but then returns an empty one."""

    def __init__(self):
        self.calls = 0

    async def fetch_page(self, playlist_ref, page_size, page_token):
        self.calls += 1
        items = make_entries("a", "b") if self.calls == 1 else []
        return PlaylistPage(
            title="Mix", estimated_total=50, items=items, has_more=True, next_page_token=2
        )


def test_empty_page_ends_pagination(tmp_path) -> None:
    source = _LyingSource()
    ingestor, registry, _, _ = _ingestor(tmp_path, source, page_size=2)

    asyncio.run(ingestor.ingest_all("ref"))

    assert source.calls == 2
    assert len(registry) == 2


def test_ledger_ids_start_completed(tmp_path) -> None:
    ingestor, registry, ledger, _ = _ingestor(
        tmp_path, FakeSource(make_entries("a", "b", "c"))
    )
    ledger.add("b")

    loaded = asyncio.run(ingestor.ingest_all("ref"))

    assert registry.get("b").state is TrackState.COMPLETED
    assert loaded.pending == 2
    assert ingestor.stats.tracks_skipped_ledger == 1


def test_existing_files_are_reconciled(tmp_path) -> None:
    (tmp_path / "Song a.mp3").write_bytes(b"x")
    ingestor, registry, ledger, _ = _ingestor(
        tmp_path, FakeSource(make_entries("a", "b")), reconcile_dir=tmp_path
    )

    asyncio.run(ingestor.ingest_all("ref"))

    assert registry.get("a").state is TrackState.COMPLETED
    assert registry.get("b").state is TrackState.PENDING
    assert "a" not in ledger
    assert ingestor.stats.tracks_skipped_exists == 1


def test_interleaved_announces_estimate_then_drains_each_page(tmp_path) -> None:
    source = FakeSource(make_entries(*"abcde"), estimated_total=5)
    ingestor, registry, ledger, reporter = _ingestor(tmp_path, source, page_size=2)
    converter = FakeConverter()
    scheduler = BoundedScheduler(
        registry,
        converter,
        ledger,
        output_dir=tmp_path,
        extension="mp3",
        reporter=reporter,
        max_concurrent=3,
    )

    asyncio.run(ingestor.ingest_interleaved("ref", scheduler))

    assert reporter.types[0] == "loaded"
    assert reporter.events[0].total == 5
    assert reporter.types.count("loaded") == 1
    # One sweep per page: pages hold at most two tracks.
    assert [e.total for e in reporter.events[1:]] == [2, 4, 5]
    assert converter.max_concurrent <= 2
    assert registry.count_by_state(TrackState.COMPLETED) == 5


def test_stop_ends_pagination(tmp_path) -> None:
    source = FakeSource(make_entries(*"abcdef"))
    ingestor, registry, _, _ = _ingestor(tmp_path, source, page_size=2)
    ingestor.cancel_token.request_stop()

    asyncio.run(ingestor.ingest_all("ref"))

    assert source.calls == []
    assert len(registry) == 0
