from playlist_dl.utils.formatting import format_duration, format_size, shorten
from playlist_dl.utils.path import parse_playlist_id, playlist_url


def test_parse_playlist_id_from_urls_and_bare_ids() -> None:
    assert (
        parse_playlist_id("https://www.youtube.com/playlist?list=PL1234567890")
        == "PL1234567890"
    )
    assert (
        parse_playlist_id("https://www.youtube.com/watch?v=abc&list=PLxyz_12345-")
        == "PLxyz_12345-"
    )
    assert parse_playlist_id("PL1234567890") == "PL1234567890"
    assert parse_playlist_id("https://www.youtube.com/watch?v=abc") is None
    assert parse_playlist_id("short") is None


def test_playlist_url_normalizes_references() -> None:
    assert (
        playlist_url("PL1234567890")
        == "https://www.youtube.com/playlist?list=PL1234567890"
    )
    assert playlist_url("https://example.com/some/feed") == "https://example.com/some/feed"


def test_formatting_helpers() -> None:
    assert format_size(0) == "0 B"
    assert format_size(1536) == "1.5 KB"
    assert format_duration(3725) == "1h 2m 5s"
    assert format_duration(0) == "0s"
    assert shorten("abcdef", 4) == "abc…"
    assert shorten("abc", 4) == "abc"
