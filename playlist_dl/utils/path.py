"""
Utilities for handling file paths and playlist URL parsing.
"""

import re
from pathlib import Path
from urllib.parse import parse_qs, urlparse

_PLAYLIST_ID = re.compile(r"^[\w-]{10,}$")


def parse_playlist_id(url: str) -> str | None:
    """
    Extracts the playlist ID from a playlist or watch URL, or accepts a bare ID.
    """
    url = url.strip()
    if _PLAYLIST_ID.match(url):
        return url
    parsed = urlparse(url)
    if not parsed.netloc:
        return None
    list_id = parse_qs(parsed.query).get("list", [None])[0]
    return list_id or None


def playlist_url(playlist_ref: str) -> str:
    """Normalizes a playlist reference into a canonical playlist URL."""
    list_id = parse_playlist_id(playlist_ref)
    if list_id is None:
        return playlist_ref
    return f"https://www.youtube.com/playlist?list={list_id}"


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
