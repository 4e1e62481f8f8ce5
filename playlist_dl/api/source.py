"""
Playlist metadata source backed by yt-dlp's flat playlist extraction.
"""

import asyncio
import logging
from typing import Any

from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError

from playlist_dl.exceptions import MetadataSourceError
from playlist_dl.models.track import PlaylistEntry, PlaylistPage
from playlist_dl.utils.path import playlist_url

log = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={}"


class YtDlpPlaylistSource:
    """
    Fetches playlist pages without downloading anything.

    The page token is the 1-based page number; each request asks yt-dlp for
    the matching `playlist_items` slice only.
    """

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.5):
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    def _options(self, start: int, end: int) -> dict[str, Any]:
        return {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "extract_flat": "in_playlist",
            "playlist_items": f"{start}-{end}",
        }

    def _extract(self, url: str, start: int, end: int) -> dict[str, Any]:
        with YoutubeDL(self._options(start, end)) as ydl:
            info = ydl.extract_info(url, download=False)
        if not info:
            raise MetadataSourceError(f"No playlist information returned for '{url}'.")
        return info

    async def fetch_page(
        self, playlist_ref: str, page_size: int, page_token: Any
    ) -> PlaylistPage:
        page_number = int(page_token or 1)
        start = (page_number - 1) * page_size + 1
        end = start + page_size - 1
        url = playlist_url(playlist_ref)

        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                info = await asyncio.to_thread(self._extract, url, start, end)
                return self._to_page(info, page_number, page_size)
            except MetadataSourceError:
                raise
            except (DownloadError, OSError) as e:
                last_exception = e
                log.debug(
                    f"Playlist page {page_number} attempt "
                    f"{attempt}/{self.max_attempts} failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise MetadataSourceError(
            f"Could not fetch page {page_number} of playlist '{playlist_ref}': "
            f"{last_exception}"
        ) from last_exception

    def _to_page(
        self, info: dict[str, Any], page_number: int, page_size: int
    ) -> PlaylistPage:
        raw_entries = list(info.get("entries") or [])
        items: list[PlaylistEntry] = []
        for raw in raw_entries:
            if not raw or not raw.get("id"):
                continue
            track_id = str(raw["id"])
            url = raw.get("url") or raw.get("webpage_url") or WATCH_URL.format(track_id)
            title = str(raw.get("title") or "")
            items.append(PlaylistEntry(id=track_id, title=title, url=url))

        count = info.get("playlist_count")
        estimated_total = int(count) if count else 0
        # playlist_count is only an estimate; a short page ends the listing.
        has_more = len(raw_entries) == page_size

        return PlaylistPage(
            title=str(info.get("title") or ""),
            estimated_total=estimated_total,
            items=items,
            has_more=has_more,
            next_page_token=page_number + 1 if has_more else None,
        )
