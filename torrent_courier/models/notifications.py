"""
Records used by the notification fan-out.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass
class PrivateChannel:
    """A direct-message channel opened lazily for one recipient."""

    id: str
    recipient_id: str
    created_at: datetime
    last_message_at: datetime

    def is_expired(self, ttl: timedelta, now: datetime) -> bool:
        return self.last_message_at + ttl < now


@dataclass(frozen=True)
class NotificationRecipient:
    """An opt-in request to be told when one torrent completes."""

    torrent_id: str
    recipient_id: str | None = None
    channel_id: str | None = None
