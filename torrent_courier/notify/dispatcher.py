"""
Delivers completion events to everyone who asked for them.
"""

import asyncio
import logging
from typing import Optional

from torrent_courier.exceptions import NotificationError, StoreError
from torrent_courier.models.torrent import Torrent
from torrent_courier.storage.base import TorrentStore
from torrent_courier.utils.backoff import get_until_stopped

from .private import PrivateMessenger
from .sink import NotificationSink
from .subscriptions import SubscriptionSet

log = logging.getLogger(__name__)


class CompletionDispatcher:
    """
    Fans one completed torrent out to its registered recipients and to every
    subscribed channel.

    Delivery is best effort: a failure for one recipient is logged and the
    remaining recipients are still served.
    """

    def __init__(
        self,
        sink: NotificationSink,
        store: TorrentStore,
        messenger: PrivateMessenger,
        subscriptions: SubscriptionSet,
        logger: Optional[logging.Logger] = None,
    ):
        self.sink = sink
        self.store = store
        self.messenger = messenger
        self.subscriptions = subscriptions
        self.log = logger or log

    async def _send_channel(self, channel_id: str, text: str) -> bool:
        try:
            await self.sink.send_channel_message(channel_id, text)
            return True
        except Exception as e:
            self.log.error(f"Failed to send notification to channel {channel_id}: {e}")
            return False

    async def dispatch(self, torrent: Torrent) -> int:
        """
        Notifies everyone interested in `torrent`.

        Returns:
            The number of messages delivered.
        """
        self.log.info(f"Completed torrent: {torrent.display_name}")
        delivered = 0

        try:
            recipients = await self.store.list_notification_recipients(torrent.id)
        except StoreError as e:
            self.log.error(f"Failed to get notifications for {torrent.id}: {e}")
            recipients = []

        content = f"Completed download: {torrent.display_name}"
        for recipient in recipients:
            if recipient.recipient_id:
                try:
                    await self.messenger.send(recipient.recipient_id, content)
                    delivered += 1
                except NotificationError as e:
                    self.log.error(f"Failed to send notification: {e}")
            if recipient.channel_id and await self._send_channel(
                recipient.channel_id, content
            ):
                delivered += 1

        if recipients:
            # Requests are one-shot; a failed delivery is not retried.
            try:
                await self.store.delete_notifications(torrent.id)
            except StoreError as e:
                self.log.error(f"Failed to clear notifications for {torrent.id}: {e}")

        broadcast = f"{torrent.display_name} finished downloading"
        for channel_id in await self.subscriptions.snapshot():
            if await self._send_channel(channel_id, broadcast):
                delivered += 1
        return delivered

    async def run(self, stop_event: asyncio.Event, queue: asyncio.Queue) -> None:
        """Dispatches every torrent put on `queue` until `stop_event` is set."""
        while True:
            torrent: Torrent | None = await get_until_stopped(stop_event, queue)
            if torrent is None:
                break
            try:
                await self.dispatch(torrent)
            finally:
                queue.task_done()
        self.log.debug("Completion dispatcher stopped")
