"""
Utility for generating M3U playlist files.
"""

import logging
from pathlib import Path
from typing import Sequence

from mutagen import File as MutagenFile
from mutagen import MutagenError

from .naming import sanitize_filename

log = logging.getLogger(__name__)


def generate_m3u(
    playlist_directory: Path, playlist_name: str, audio_files: Sequence[Path]
) -> bool:
    """
    Writes an M3U playlist listing `audio_files` in the given order, with
    paths relative to the playlist directory.
    """
    if not audio_files:
        log.debug(f"No audio files to list in a playlist for '{playlist_directory}'.")
        return False

    file_name = sanitize_filename(playlist_name) or "playlist"
    playlist_path = playlist_directory / f"{file_name}.m3u"

    content = ["#EXTM3U"]
    for audio_path in audio_files:
        try:
            audio = MutagenFile(audio_path, easy=True)
            length = int(audio.info.length) if audio and audio.info else -1
            title = (audio.get("title") if audio else None) or [audio_path.stem]
            content.append(f"#EXTINF:{length},{title[0]}")
        except MutagenError:
            content.append(f"#EXTINF:-1,{audio_path.stem}")
        content.append(audio_path.relative_to(playlist_directory).as_posix())

    try:
        with open(playlist_path, "w", encoding="utf-8") as f:
            f.write("\n".join(content) + "\n")
        log.info(f"Generated playlist: '{playlist_path}'")
        return True
    except IOError as e:
        log.error(f"Failed to write playlist file: {e}")
        return False
