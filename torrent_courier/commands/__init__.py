"""
Chat commands, independent of any particular chat platform.
"""

from .base import (
    Capability,
    Command,
    CommandContext,
    CommandRegistry,
    CommandResponse,
    Form,
    FormField,
)
from .notifications import NotifyMeCommand, SubscribeDownloadsCommand
from .torrents import AddTorrentCommand, ListDownloadsCommand

__all__ = [
    "AddTorrentCommand",
    "Capability",
    "Command",
    "CommandContext",
    "CommandRegistry",
    "CommandResponse",
    "Form",
    "FormField",
    "ListDownloadsCommand",
    "NotifyMeCommand",
    "SubscribeDownloadsCommand",
]
