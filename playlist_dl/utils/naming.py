"""
Derives filesystem-safe file names from track titles.
"""

import re
from typing import Container

from pathvalidate import sanitize_filename as _make_portable

_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*]+')
_WHITESPACE = re.compile(r"\s+")


def sanitize_filename(title: str) -> str:
    """
    Strips characters that are illegal across common filesystems, collapses
    whitespace runs to a single space and trims the result.

    May return an empty string; callers fall back to the track id.
    """
    name = _ILLEGAL_CHARS.sub("", title).strip()
    if not name:
        return ""
    # Control characters, reserved device names and trailing dots.
    name = _make_portable(name, platform="universal")
    return _WHITESPACE.sub(" ", name).strip()


def track_file_stem(title: str, track_id: str, taken: Container[str] = ()) -> str:
    """
    Returns the base name used for a track's output file.

    Falls back to the id when the title sanitizes to nothing, and appends the
    id when another track already claimed the same name.
    """
    safe_id = sanitize_filename(track_id) or "track"
    stem = sanitize_filename(title)
    if not stem:
        return safe_id
    if stem in taken:
        return f"{stem} [{safe_id}]"
    return stem
