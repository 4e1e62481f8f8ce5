"""
Metadata Source Layer.

This package retrieves paginated playlist metadata from the remote service.
"""

from .source import YtDlpPlaylistSource

__all__ = ["YtDlpPlaylistSource"]
