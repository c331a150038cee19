"""
The chat-platform interface notifications are delivered through.
"""

import itertools
import logging
from typing import Optional, Protocol

log = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Sends text to channels and users of some chat platform."""

    async def send_channel_message(self, channel_id: str, text: str) -> None: ...

    async def send_direct_message(self, recipient_id: str, text: str) -> str:
        """Sends `text` to a user and returns the channel it went through."""
        ...

    async def create_direct_channel(self, recipient_id: str) -> str: ...

    async def delete_channel(self, channel_id: str) -> None: ...


class LoggingSink:
    """
    A sink that writes every message to the log.

    Used when the service runs without a chat platform attached.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or log
        self._ids = itertools.count(1)
        self._direct_channels: dict[str, str] = {}

    async def send_channel_message(self, channel_id: str, text: str) -> None:
        self.log.info(f"[cyan]#{channel_id}[/cyan] {text}")

    async def send_direct_message(self, recipient_id: str, text: str) -> str:
        channel_id = self._direct_channels.get(recipient_id)
        if channel_id is None:
            channel_id = await self.create_direct_channel(recipient_id)
        await self.send_channel_message(channel_id, text)
        return channel_id

    async def create_direct_channel(self, recipient_id: str) -> str:
        channel_id = f"dm-{recipient_id}-{next(self._ids)}"
        self._direct_channels[recipient_id] = channel_id
        self.log.debug(f"Opened direct channel {channel_id} for {recipient_id}")
        return channel_id

    async def delete_channel(self, channel_id: str) -> None:
        for recipient_id, known in list(self._direct_channels.items()):
            if known == channel_id:
                del self._direct_channels[recipient_id]
        self.log.debug(f"Closed channel {channel_id}")
