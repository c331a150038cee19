"""
Commands that add torrents to the daemon and list the tracked ones.
"""

import logging
import uuid
from typing import Optional

from torrent_courier.api.client import TransmissionClient
from torrent_courier.exceptions import CommandNotFoundError, UnexpectedTorrentCountError
from torrent_courier.models.config import CATEGORIES, category_sub_dir, resolve_category
from torrent_courier.models.torrent import Torrent, TorrentMetadata
from torrent_courier.storage.base import TorrentStore
from torrent_courier.utils.magnet import (
    MAX_DISPLAY_NAME_LENGTH,
    magnet_display_name,
    truncate_display_name,
)

from .base import (
    Capability,
    Command,
    CommandContext,
    CommandResponse,
    Form,
    FormField,
)

log = logging.getLogger(__name__)


class AddTorrentCommand(Command):
    """
    Adds a magnet link in two steps: the command answers with a form prefilled
    from the link, and the submitted form adds the torrent to the daemon.
    """

    name = "add-torrent"
    description = "Add a new torrent"
    capabilities = Capability.BASIC | Capability.MODAL

    def __init__(
        self,
        client: TransmissionClient,
        store: TorrentStore,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.store = store
        self.log = logger or log
        self._pending: set[str] = set()

    async def handle(self, ctx: CommandContext) -> CommandResponse:
        magnet_uri = ctx.option("magnet")
        display_name = truncate_display_name(magnet_display_name(magnet_uri))

        custom_id = ctx.interaction_id or uuid.uuid4().hex
        self._pending.add(custom_id)
        self.log.debug(f"Sending add form {custom_id} for '{display_name}'")

        placeholder = ", ".join(f'"{c.title()}"' for c in CATEGORIES)
        return CommandResponse(
            form=Form(
                custom_id=custom_id,
                title="Add torrent dialog",
                fields=[
                    FormField(
                        custom_id="name",
                        label="Name",
                        value=display_name,
                        required=True,
                        min_length=5,
                        max_length=MAX_DISPLAY_NAME_LENGTH,
                    ),
                    FormField(
                        custom_id="category", label="Category", placeholder=placeholder
                    ),
                    FormField(
                        custom_id="link",
                        label="Link",
                        value=magnet_uri,
                        required=True,
                        min_length=5,
                    ),
                ],
            )
        )

    def has_custom_id(self, custom_id: str) -> bool:
        return custom_id in self._pending

    async def handle_form(self, ctx: CommandContext, custom_id: str) -> CommandResponse:
        if custom_id not in self._pending:
            raise CommandNotFoundError(f"No add form pending with ID {custom_id!r}")
        try:
            await self.add(
                ctx.option("link"),
                name=ctx.option("name"),
                category=ctx.option("category"),
            )
        finally:
            self._pending.discard(custom_id)
        return CommandResponse(content="Thank you for sharing", ephemeral=True)

    async def add(self, link: str, name: str = "", category: str = "") -> Torrent:
        """
        Adds `link` to the daemon and records it with its friendly name and category.

        Raises:
            UnknownCategoryError: If `category` is not a known category.
            UnexpectedTorrentCountError: If the daemon does not list exactly one
                torrent for the new ID.
        """
        if not name and link.startswith("magnet:"):
            name = truncate_display_name(magnet_display_name(link))
        metadata = TorrentMetadata(friendly_name=name)

        sub_dir = None
        if category:
            resolved = resolve_category(category)
            sub_dir = category_sub_dir(resolved)
            metadata.categories = [resolved]

        torrent_id = await self.client.add_link(link, sub_dir=sub_dir)
        torrents = await self.client.list_torrents(torrent_id)
        self.log.debug(f"Scraped torrent {torrent_id} from daemon")
        if len(torrents) != 1:
            raise UnexpectedTorrentCountError(want=1, got=len(torrents))

        torrent = Torrent.from_daemon(torrents[0])
        torrent.metadata = metadata
        existing = await self.store.get_torrent(torrent.id)
        if existing is not None:
            # Completions of tracked torrents are detected by the scrape loop only.
            torrent.completed_at = existing.completed_at
        await self.store.upsert_torrent(torrent)
        return torrent


class ListDownloadsCommand(Command):
    name = "list-downloads"
    description = "List tracked downloads"

    DEFAULT_LIMIT = 10

    def __init__(self, store: TorrentStore):
        self.store = store

    async def handle(self, ctx: CommandContext) -> CommandResponse:
        raw_limit = ctx.option("limit")
        limit = int(raw_limit) if raw_limit.isdigit() else self.DEFAULT_LIMIT
        torrents = await self.store.list_torrents(limit)
        if not torrents:
            return CommandResponse(content="No downloads yet", ephemeral=True)
        return CommandResponse(
            title="Downloads",
            content="\n".join(str(torrent) for torrent in torrents),
            ephemeral=True,
        )
