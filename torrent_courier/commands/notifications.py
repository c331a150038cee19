"""
Commands that decide who hears about finished downloads.
"""

import asyncio

from torrent_courier.exceptions import CommandError
from torrent_courier.notify.dispatcher import CompletionDispatcher
from torrent_courier.notify.subscriptions import SubscriptionSet
from torrent_courier.storage.base import TorrentStore

from .base import Capability, Command, CommandContext, CommandResponse


class SubscribeDownloadsCommand(Command):
    """Toggles download notifications for the channel it is used in."""

    name = "subscribe-downloads"
    description = "Subscribe to download notifications"

    def __init__(self, subscriptions: SubscriptionSet):
        self.subscriptions = subscriptions

    async def handle(self, ctx: CommandContext) -> CommandResponse:
        if await self.subscriptions.toggle(ctx.channel_id):
            return CommandResponse(
                title="Successfully subscribed channel",
                content="Subscribed channel to download notifications",
            )
        return CommandResponse(
            title="Successfully unsubscribed channel",
            content="Unsubscribed channel from download notifications",
        )


class NotifyMeCommand(Command):
    """
    Registers the caller (or, with `here`, the current channel) to be told when
    one torrent completes.

    Its start-up task delivers those notifications as completions arrive.
    """

    name = "notify-me"
    description = "Get a message when a download completes"
    capabilities = Capability.BASIC | Capability.INITIALIZABLE

    def __init__(
        self,
        store: TorrentStore,
        dispatcher: CompletionDispatcher,
        completed_queue: asyncio.Queue,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.completed_queue = completed_queue

    async def handle(self, ctx: CommandContext) -> CommandResponse:
        torrent_id = ctx.option("torrent")
        torrent = await self.store.get_torrent(torrent_id) if torrent_id else None
        if torrent is None:
            raise CommandError(f"Unknown torrent: {torrent_id!r}")
        if torrent.completed_at is not None:
            return CommandResponse(
                content=f"{torrent.display_name} is already downloaded", ephemeral=True
            )

        if ctx.option("here").lower() in ("1", "true", "yes"):
            await self.store.add_notification(torrent.id, channel_id=ctx.channel_id)
            target = "this channel"
        else:
            await self.store.add_notification(torrent.id, recipient_id=ctx.user_id)
            target = "you"
        return CommandResponse(
            content=f"I'll tell {target} when {torrent.display_name} finishes",
            ephemeral=True,
        )

    async def on_start(self, stop_event: asyncio.Event) -> None:
        await self.dispatcher.run(stop_event, self.completed_queue)
