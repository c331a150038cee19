"""
Channels that asked to hear about every finished download.
"""

from torrent_courier.utils.rwlock import AsyncRWLock


class SubscriptionSet:
    """
    The set of subscribed channel IDs.

    Lives only as long as the process; a restart clears every subscription.
    """

    def __init__(self):
        self._channels: set[str] = set()
        self._lock = AsyncRWLock()

    async def toggle(self, channel_id: str) -> bool:
        """Flips the subscription for `channel_id`. Returns True if now subscribed."""
        async with self._lock.write():
            if channel_id in self._channels:
                self._channels.discard(channel_id)
                return False
            self._channels.add(channel_id)
            return True

    async def contains(self, channel_id: str) -> bool:
        async with self._lock.read():
            return channel_id in self._channels

    async def snapshot(self) -> list[str]:
        """Returns the subscribed channels, sorted."""
        async with self._lock.read():
            return sorted(self._channels)
