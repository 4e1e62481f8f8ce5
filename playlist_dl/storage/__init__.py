"""
Storage Layer.

This package handles all data persistence: the configuration file and the
per-folder completion ledger.
"""

from .config_manager import ConfigManager
from .ledger import CompletionLedger

__all__ = ["CompletionLedger", "ConfigManager"]
