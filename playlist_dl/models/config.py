"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

AUDIO_FORMATS = {
    "mp3": "MP3 (lossy, widely supported)",
    "m4a": "AAC in MP4 container",
    "opus": "Opus (lossy, small files)",
    "flac": "FLAC (lossless re-encode)",
    "wav": "WAV (uncompressed)",
}

DEFAULT_LEDGER_FILENAME = "downloaded-tracks.json"

DOWNLOAD_MODES = ("bulk", "interleaved")
SCHEDULING_STRATEGIES = ("sweep", "pipelined")


def default_output_dir() -> str:
    return str(Path("~/Music/playlist-dl").expanduser())


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Output
    output_dir: str = Field(default_factory=default_output_dir)
    audio_format: str = "mp3"
    audio_quality: str = "192"
    ffmpeg_location: str = ""
    ledger_filename: str = DEFAULT_LEDGER_FILENAME

    # Queue behaviour
    max_workers: int = 5
    batch_size: int = 10
    mode: str = "bulk"
    strategy: str = "sweep"
    reconcile_existing: bool = True
    no_m3u: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field(default="", repr=False)

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent downloads."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1 or v > 500:
            raise ValueError("Batch size must be between 1 and 500.")
        return v

    @field_validator("audio_format")
    @classmethod
    def validate_audio_format(cls, v: str) -> str:
        v = v.lower()
        if v not in AUDIO_FORMATS:
            raise ValueError(
                f"Audio format must be one of: {', '.join(sorted(AUDIO_FORMATS))}."
            )
        return v

    @field_validator("audio_quality")
    @classmethod
    def validate_audio_quality(cls, v: str) -> str:
        """Accepts a VBR level (0-10) or a bitrate in kbps."""
        if not v.rstrip("kK").isdigit():
            raise ValueError("Audio quality must be a number (e.g. '192' or '0').")
        return v

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        v = v.lower()
        if v not in DOWNLOAD_MODES:
            raise ValueError(f"Mode must be one of: {', '.join(DOWNLOAD_MODES)}.")
        return v

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        v = v.lower()
        if v not in SCHEDULING_STRATEGIES:
            raise ValueError(
                f"Strategy must be one of: {', '.join(SCHEDULING_STRATEGIES)}."
            )
        return v

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Output directory cannot be empty.")
        return str(Path(v).expanduser())

    @field_validator("ledger_filename")
    @classmethod
    def validate_ledger_filename(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("Ledger filename must be a plain file name.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
