import asyncio

import pytest
from yt_dlp.utils import DownloadError

import playlist_dl.api.source as source_module
from playlist_dl.api.source import YtDlpPlaylistSource
from playlist_dl.exceptions import MetadataSourceError

PLAYLIST = [
    {"id": f"v{i}", "title": f"Video {i}", "url": f"https://www.youtube.com/watch?v=v{i}"}
    for i in range(1, 13)
]


class _FakeYDL:
    seen_opts = []

    def __init__(self, opts):
        self.opts = dict(opts or {})
        _FakeYDL.seen_opts.append(self.opts)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def extract_info(self, url, download=False):
        assert download is False
        start, end = (int(n) for n in self.opts["playlist_items"].split("-"))
        return {
            "title": "Road Trip",
            "playlist_count": len(PLAYLIST),
            "entries": PLAYLIST[start - 1 : end],
        }


def test_pages_are_requested_by_item_range(monkeypatch) -> None:
    monkeypatch.setattr(source_module, "YoutubeDL", _FakeYDL)
    source = YtDlpPlaylistSource()

    first = asyncio.run(source.fetch_page("PLabcdefghij", 5, None))
    third = asyncio.run(source.fetch_page("PLabcdefghij", 5, first.next_page_token + 1))

    assert first.title == "Road Trip"
    assert first.estimated_total == 12
    assert [e.id for e in first.items] == ["v1", "v2", "v3", "v4", "v5"]
    assert first.has_more
    assert first.next_page_token == 2
    assert [e.id for e in third.items] == ["v11", "v12"]
    assert not third.has_more
    assert third.next_page_token is None
    assert _FakeYDL.seen_opts[-1]["extract_flat"] == "in_playlist"
    assert _FakeYDL.seen_opts[-1]["playlist_items"] == "11-15"


def test_exact_last_page_continues_until_an_empty_page(monkeypatch) -> None:
    monkeypatch.setattr(source_module, "YoutubeDL", _FakeYDL)
    source = YtDlpPlaylistSource()

    full = asyncio.run(source.fetch_page("PLabcdefghij", 6, 2))
    empty = asyncio.run(source.fetch_page("PLabcdefghij", 6, full.next_page_token))

    assert len(full.items) == 6
    assert full.has_more
    assert full.next_page_token == 3
    assert empty.items == []
    assert not empty.has_more


def test_underreported_count_does_not_end_listing(monkeypatch) -> None:
    class _UndercountingYDL(_FakeYDL):
        def extract_info(self, url, download=False):
            info = super().extract_info(url, download)
            info["playlist_count"] = 5
            return info

    monkeypatch.setattr(source_module, "YoutubeDL", _UndercountingYDL)
    page = asyncio.run(YtDlpPlaylistSource().fetch_page("PLabcdefghij", 10, None))

    assert page.estimated_total == 5
    assert len(page.items) == 10
    assert page.has_more
    assert page.next_page_token == 2


def test_entries_without_url_get_watch_link(monkeypatch) -> None:
    class _SparseYDL(_FakeYDL):
        def extract_info(self, url, download=False):
            return {"title": "T", "entries": [None, {"id": "abc", "title": None}]}

    monkeypatch.setattr(source_module, "YoutubeDL", _SparseYDL)
    page = asyncio.run(YtDlpPlaylistSource().fetch_page("PLabcdefghij", 10, None))

    assert len(page.items) == 1
    assert page.items[0].url == "https://www.youtube.com/watch?v=abc"
    assert page.items[0].title == ""
    assert page.estimated_total == 0


def test_persistent_failure_raises_after_retries(monkeypatch) -> None:
    calls = []

    class _BrokenYDL(_FakeYDL):
        def extract_info(self, url, download=False):
            calls.append(url)
            raise DownloadError("ERROR: network down")

    monkeypatch.setattr(source_module, "YoutubeDL", _BrokenYDL)
    source = YtDlpPlaylistSource(max_attempts=3, base_delay=0)

    with pytest.raises(MetadataSourceError, match="network down"):
        asyncio.run(source.fetch_page("PLabcdefghij", 10, None))

    assert calls == ["https://www.youtube.com/playlist?list=PLabcdefghij"] * 3
