"""
Private (direct-message) channels: created on first use, bumped on every
message, and closed once they have been idle for longer than a TTL.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from torrent_courier.exceptions import NotificationError, StoreError
from torrent_courier.models.notifications import PrivateChannel
from torrent_courier.storage.base import TorrentStore
from torrent_courier.utils.backoff import sleep_until_stopped

from .sink import NotificationSink

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PrivateMessenger:
    """Sends direct messages through persisted, garbage-collected private channels."""

    def __init__(
        self,
        sink: NotificationSink,
        store: TorrentStore,
        ttl: timedelta = timedelta(days=1),
        logger: Optional[logging.Logger] = None,
    ):
        self.sink = sink
        self.store = store
        self.ttl = ttl
        self.log = logger or log

    async def _channel_for(self, recipient_id: str) -> PrivateChannel:
        channel = await self.store.get_private_channel(recipient_id)
        if channel is not None:
            return channel

        channel_id = await self.sink.create_direct_channel(recipient_id)
        now = utcnow()
        channel = PrivateChannel(
            id=channel_id,
            recipient_id=recipient_id,
            created_at=now,
            last_message_at=now,
        )
        await self.store.upsert_private_channel(channel)
        self.log.debug(f"Created private channel {channel_id} for {recipient_id}")
        return channel

    async def send(self, recipient_id: str, text: str) -> None:
        """
        Sends `text` to `recipient_id`, opening a private channel if needed.

        Raises:
            NotificationError: If the channel cannot be opened or the message
                cannot be delivered.
        """
        try:
            channel = await self._channel_for(recipient_id)
            await self.sink.send_channel_message(channel.id, text)
            channel.last_message_at = utcnow()
            await self.store.upsert_private_channel(channel)
        except StoreError as e:
            raise NotificationError(
                f"Failed to record private channel for {recipient_id}: {e}"
            ) from e
        except NotificationError:
            raise
        except Exception as e:
            raise NotificationError(
                f"Failed to send private message to {recipient_id}: {e}"
            ) from e

    async def garbage_collect(self, now: Optional[datetime] = None) -> int:
        """
        Closes every channel whose last message is older than the TTL.

        A channel that cannot be closed on the platform is kept in the store so
        the next pass retries it.

        Returns:
            The number of channels closed.
        """
        now = now or utcnow()
        closed = 0
        for channel in await self.store.list_private_channels():
            if not channel.is_expired(self.ttl, now):
                continue
            self.log.info(f"Deleting private channel {channel.id}")
            try:
                await self.sink.delete_channel(channel.id)
            except Exception as e:
                self.log.warning(f"Failed to delete private channel {channel.id}: {e}")
                continue
            await self.store.delete_private_channel(channel.id)
            closed += 1
        return closed

    async def run_gc(self, stop_event: asyncio.Event, period: float) -> None:
        """Runs `garbage_collect` every `period` seconds until `stop_event` is set."""
        while not await sleep_until_stopped(stop_event, period):
            try:
                closed = await self.garbage_collect()
                if closed:
                    self.log.debug(f"Closed {closed} idle private channel(s)")
            except StoreError as e:
                self.log.error(f"Error collecting private channels: {e}")
        self.log.debug("Private channel collector stopped")
