"""
Command-Line Interface Layer.

This package defines the user-facing commands and the Rich-based output.
"""
