"""
Data Models Layer.

This package contains the configuration model and the core data structures
used throughout the application, such as torrents, subjects and private channels.
"""

from .config import CourierConfig
from .notifications import NotificationRecipient, PrivateChannel
from .subject import Agent, DiscoveredLink, Subject
from .torrent import DaemonTorrent, SessionStats, Torrent, TorrentMetadata, TorrentStatus

__all__ = [
    "Agent",
    "CourierConfig",
    "DaemonTorrent",
    "DiscoveredLink",
    "NotificationRecipient",
    "PrivateChannel",
    "SessionStats",
    "Subject",
    "Torrent",
    "TorrentMetadata",
    "TorrentStatus",
]
