"""
Notification Layer.

This package delivers completion events: ad-hoc channel subscriptions, lazily
created private channels with time-based cleanup, and per-torrent recipients.
"""

from .dispatcher import CompletionDispatcher
from .private import PrivateMessenger
from .sink import LoggingSink, NotificationSink
from .subscriptions import SubscriptionSet

__all__ = [
    "CompletionDispatcher",
    "LoggingSink",
    "NotificationSink",
    "PrivateMessenger",
    "SubscriptionSet",
]
