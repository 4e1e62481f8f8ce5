"""
Media Processing Layer.

This package is responsible for fetching a track's audio and converting it
to the configured output format.
"""

from .converter import YtDlpConverter

__all__ = ["YtDlpConverter"]
