"""
Core application engine for orchestrating the download process.

This package contains the primary logic. The `DownloadSession` acts as the
run coordinator, feeding playlist pages from the `PlaylistIngestor` into the
`TrackRegistry` and letting the `BoundedScheduler` drive each track through
conversion.
"""
