"""
Downloads a single track's best audio stream with yt-dlp and converts it to the
configured audio format via FFmpeg.
"""

import asyncio
import glob
import logging
import os
from pathlib import Path
from typing import Any

from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError

from playlist_dl.core.cancellation import CancellationToken
from playlist_dl.exceptions import ConversionCancelledError, ConversionError

log = logging.getLogger(__name__)


class YtDlpConverter:
    """
    Fetches and converts one source into one audio file.

    The audio is written under a hidden temporary name next to the destination
    and renamed into place only once conversion succeeds, so a partial file is
    never visible under the final name.
    """

    def __init__(
        self,
        audio_format: str = "mp3",
        audio_quality: str = "192",
        ffmpeg_location: str | None = None,
    ):
        self.audio_format = audio_format
        self.audio_quality = audio_quality
        self.ffmpeg_location = ffmpeg_location or None

    @staticmethod
    def temp_stem(destination: Path) -> str:
        return f".{destination.stem}.tmp"

    def build_options(
        self, destination: Path, cancel_token: CancellationToken
    ) -> dict[str, Any]:
        def progress_hook(_status: dict[str, Any]) -> None:
            if cancel_token.abort_requested:
                raise ConversionCancelledError("Conversion aborted.")

        # '%' is a template character for yt-dlp.
        template_stem = self.temp_stem(destination).replace("%", "%%")
        options: dict[str, Any] = {
            "format": "bestaudio/best",
            "noplaylist": True,
            "outtmpl": str(destination.parent / f"{template_stem}.%(ext)s"),
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "ignoreerrors": False,
            "overwrites": True,
            "progress_hooks": [progress_hook],
            "postprocessors": [
                {
                    "key": "FFmpegExtractAudio",
                    "preferredcodec": self.audio_format,
                    "preferredquality": self.audio_quality,
                }
            ],
        }
        if self.ffmpeg_location:
            options["ffmpeg_location"] = self.ffmpeg_location
        return options

    def _temp_output(self, destination: Path, info: dict[str, Any] | None) -> Path:
        for download in (info or {}).get("requested_downloads") or []:
            filepath = download.get("filepath")
            if filepath and os.path.isfile(filepath):
                return Path(filepath)
        return destination.parent / f"{self.temp_stem(destination)}.{self.audio_format}"

    def _cleanup(self, destination: Path) -> None:
        pattern = os.path.join(
            glob.escape(str(destination.parent)),
            glob.escape(self.temp_stem(destination)) + ".*",
        )
        for leftover in glob.glob(pattern):
            try:
                os.remove(leftover)
            except OSError as e:
                log.debug(f"Could not remove temporary file '{leftover}': {e}")

    def convert_sync(
        self, source_locator: str, destination: Path, cancel_token: CancellationToken
    ) -> None:
        """Blocking conversion; run it off the event loop."""
        destination = Path(destination)
        if cancel_token.abort_requested:
            raise ConversionCancelledError("Conversion aborted.")

        try:
            with YoutubeDL(self.build_options(destination, cancel_token)) as ydl:
                info = ydl.extract_info(source_locator, download=True)

            produced = self._temp_output(destination, info)
            if not produced.is_file():
                raise ConversionError(
                    f"Converted file was not produced for '{source_locator}'."
                )
            os.replace(produced, destination)
        except ConversionError:
            self._cleanup(destination)
            raise
        except DownloadError as e:
            self._cleanup(destination)
            if cancel_token.abort_requested:
                raise ConversionCancelledError("Conversion aborted.") from e
            raise ConversionError(str(e)) from e
        except OSError as e:
            self._cleanup(destination)
            raise ConversionError(f"Could not write '{destination.name}': {e}") from e

    async def convert(
        self, source_locator: str, destination: Path, cancel_token: CancellationToken
    ) -> None:
        await asyncio.to_thread(
            self.convert_sync, source_locator, destination, cancel_token
        )
