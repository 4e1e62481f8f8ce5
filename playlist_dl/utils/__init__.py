"""
General-purpose helpers for naming, paths, formatting and playlists.
"""
