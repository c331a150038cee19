"""
Storage Layer.

This package handles all data persistence: the configuration file and the
SQLite database of torrents, notification requests and private channels.
"""

from .base import TorrentStore
from .config_manager import ConfigManager
from .store import SQLiteStore

__all__ = ["ConfigManager", "SQLiteStore", "TorrentStore"]
