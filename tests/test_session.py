import asyncio
import json

import pytest

from fakes import FakeConverter, FakeSource, RecordingReporter, make_entries
from playlist_dl.core.download_manager import STOPPED_MESSAGE, DownloadSession
from playlist_dl.core.events import CallbackReporter, SweepProgress
from playlist_dl.exceptions import MetadataSourceError
from playlist_dl.models.config import DownloadConfig
from playlist_dl.models.track import TrackState
from playlist_dl.storage.ledger import load_ledger


def _config(tmp_path, **overrides):
    settings = {"output_dir": str(tmp_path / "out"), "max_workers": 2, "batch_size": 2}
    settings.update(overrides)
    return DownloadConfig(**settings)


def _session(tmp_path, entries, converter=None, reporter=None, **overrides):
    return DownloadSession(
        _config(tmp_path, **overrides),
        source=FakeSource(entries),
        converter=converter or FakeConverter(),
        reporter=reporter or RecordingReporter(),
    )


def test_full_run_emits_loaded_progress_complete(tmp_path) -> None:
    reporter = RecordingReporter()
    session = _session(tmp_path, make_entries(*"abcde"), reporter=reporter)

    stats = asyncio.run(session.start("ref"))

    assert reporter.types[0] == "loaded"
    assert reporter.types[-1] == "complete"
    assert set(reporter.types[1:-1]) == {"progress"}
    assert stats.tracks_downloaded == 5
    assert not stats.stopped
    assert load_ledger(session.ledger.path) == set("abcde")


def test_empty_playlist_completes_without_sweeps(tmp_path) -> None:
    reporter = RecordingReporter()
    session = _session(tmp_path, [], reporter=reporter)

    asyncio.run(session.start("ref"))

    assert reporter.types == ["loaded", "complete"]
    assert reporter.events[0].total == 0


def _final_state(session):
    return {t.id: t.state for t in session.registry}


def test_bulk_and_interleaved_reach_the_same_state(tmp_path) -> None:
    entries = make_entries(*"abcdefg")
    bulk = _session(
        tmp_path / "bulk", entries, converter=FakeConverter(fail={"d"}), mode="bulk"
    )
    interleaved = _session(
        tmp_path / "inter",
        entries,
        converter=FakeConverter(fail={"d"}),
        mode="interleaved",
    )

    asyncio.run(bulk.start("ref"))
    asyncio.run(interleaved.start("ref"))

    assert _final_state(bulk) == _final_state(interleaved)
    assert load_ledger(bulk.ledger.path) == load_ledger(interleaved.ledger.path)
    assert bulk.registry.get("d").state is TrackState.FAILED


def test_rerun_downloads_nothing_new(tmp_path) -> None:
    entries = make_entries(*"abcd")
    asyncio.run(_session(tmp_path, entries).start("ref"))

    converter = FakeConverter()
    second = _session(tmp_path, entries, converter=converter)
    stats = asyncio.run(second.start("ref"))

    assert converter.started == []
    assert stats.tracks_skipped_ledger == 4
    assert second.registry.count_by_state(TrackState.COMPLETED) == 4


def test_rerun_retries_only_failed_tracks(tmp_path) -> None:
    entries = make_entries(*"abcd")
    asyncio.run(_session(tmp_path, entries, converter=FakeConverter(fail={"c"})).start("ref"))

    converter = FakeConverter()
    asyncio.run(_session(tmp_path, entries, converter=converter).start("ref"))

    assert converter.started == ["c"]


def test_stop_outside_a_run_is_a_no_op(tmp_path) -> None:
    session = _session(tmp_path, make_entries("a", "b"))
    session.stop()
    assert not session.cancel_token.stop_requested

    stats = asyncio.run(session.start("ref"))
    assert stats.tracks_downloaded == 2

    session.stop()
    assert not session.cancel_token.stop_requested
    assert not session.running


def test_stop_during_run_reports_stopped(tmp_path) -> None:
    reporter = RecordingReporter()
    session = _session(tmp_path, make_entries(*"abcdef"), reporter=reporter)

    class StopOnFirstProgress(RecordingReporter):
        def report(self, event):
            reporter.report(event)
            if isinstance(event, SweepProgress):
                session.stop()

    session.reporter = StopOnFirstProgress()

    stats = asyncio.run(session.start("ref"))

    assert stats.stopped
    assert reporter.types[-1] == "error"
    assert reporter.events[-1].message == STOPPED_MESSAGE
    assert "complete" not in reporter.types
    assert session.registry.count_by_state(TrackState.COMPLETED) == 2
    assert session.registry.count_by_state(TrackState.PENDING) == 4


def test_session_starts_only_once(tmp_path) -> None:
    session = _session(tmp_path, make_entries("a"))
    asyncio.run(session.start("ref"))
    with pytest.raises(RuntimeError):
        asyncio.run(session.start("ref"))


def test_metadata_failure_reports_error_and_raises(tmp_path) -> None:
    messages = []
    session = DownloadSession(
        _config(tmp_path),
        source=FakeSource([], fail=MetadataSourceError("playlist unavailable")),
        converter=FakeConverter(),
        reporter=CallbackReporter(messages.append),
    )

    with pytest.raises(MetadataSourceError):
        asyncio.run(session.start("ref"))

    assert messages == [{"type": "error", "message": "Error: playlist unavailable"}]


def test_m3u_lists_completed_tracks_in_order(tmp_path) -> None:
    session = _session(tmp_path, make_entries("a", "b", "c"))

    asyncio.run(session.start("ref"))

    playlist = (tmp_path / "out" / "Mix.m3u").read_text(encoding="utf-8").splitlines()
    assert playlist[0] == "#EXTM3U"
    assert [line for line in playlist if not line.startswith("#")] == [
        "Song a.mp3",
        "Song b.mp3",
        "Song c.mp3",
    ]


def test_no_m3u_option(tmp_path) -> None:
    session = _session(tmp_path, make_entries("a"), no_m3u=True)
    asyncio.run(session.start("ref"))
    assert list((tmp_path / "out").glob("*.m3u")) == []


def test_session_history_is_appended(tmp_path) -> None:
    session = _session(tmp_path, make_entries("a"))
    asyncio.run(session.start("ref"))

    session.save_session_stats(tmp_path / "cfg")
    session.save_session_stats(tmp_path / "cfg")

    lines = (tmp_path / "cfg" / "session_history.jsonl").read_text().splitlines()
    assert len(lines) == 2
    record = json.loads(lines[0])
    assert record["tracks_downloaded"] == 1
    assert record["playlist"] == "Mix"
