"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class PlaylistDlError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(PlaylistDlError):
    """Raised for issues related to configuration loading or validation."""


class MetadataSourceError(PlaylistDlError):
    """Raised when a page of playlist metadata cannot be retrieved."""


class ConversionError(PlaylistDlError):
    """Raised when a single track cannot be downloaded or converted."""


class ConversionCancelledError(ConversionError):
    """Raised when an in-flight conversion is aborted by a stop request."""


class StorageError(PlaylistDlError):
    """
    Raised when the output directory or the completion ledger cannot be read or
    written. Always fatal to the run.
    """


class InvalidTransitionError(PlaylistDlError):
    """Raised when a track is moved to a lifecycle state it cannot reach."""
