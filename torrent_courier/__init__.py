"""
torrent-courier: feed-driven download discovery, daemon submission and
completion notifications.
"""

__version__ = "0.3.0"
