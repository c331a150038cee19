"""
The persistence interface the scrape loop and the notification fan-out depend on.
"""

from typing import Protocol

from torrent_courier.models.notifications import NotificationRecipient, PrivateChannel
from torrent_courier.models.torrent import Torrent


class TorrentStore(Protocol):
    """A transactional, key-addressed store for torrents and private channels."""

    async def upsert_torrent(self, torrent: Torrent) -> bool:
        """Writes `torrent` and returns True if this write completed it."""
        ...

    async def get_torrent(self, torrent_id: str) -> Torrent | None: ...

    async def list_torrents(self, limit: int = 10) -> list[Torrent]: ...

    async def add_notification(
        self,
        torrent_id: str,
        recipient_id: str | None = None,
        channel_id: str | None = None,
    ) -> None: ...

    async def list_notification_recipients(
        self, torrent_id: str
    ) -> list[NotificationRecipient]: ...

    async def delete_notifications(self, torrent_id: str) -> None:
        """Forgets every notification request for `torrent_id`."""
        ...

    async def get_private_channel(self, recipient_id: str) -> PrivateChannel | None: ...

    async def list_private_channels(self) -> list[PrivateChannel]: ...

    async def upsert_private_channel(self, channel: PrivateChannel) -> None: ...

    async def delete_private_channel(self, channel_id: str) -> None: ...
