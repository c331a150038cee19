"""
Reconciles the daemon's view of every torrent with the persisted records and
detects completions.
"""

import asyncio
import logging
from typing import Optional

from torrent_courier.api.client import TransmissionClient
from torrent_courier.exceptions import CourierError
from torrent_courier.models.torrent import Torrent
from torrent_courier.storage.base import TorrentStore
from torrent_courier.utils.backoff import AdaptiveBackoff, sleep_until_stopped

log = logging.getLogger(__name__)


class ScrapeLoop:
    """
    Polls the daemon on an adaptive period and writes every torrent to the store.

    Each torrent the store reports as newly completed is handed to
    `completed_queue`. The hand-off never waits: when the queue is full the
    event is dropped and logged, so a stalled consumer cannot stall polling.
    """

    def __init__(
        self,
        client: TransmissionClient,
        store: TorrentStore,
        completed_queue: asyncio.Queue,
        min_period: float = 2.0,
        max_period: float = 300.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.store = store
        self.completed_queue = completed_queue
        self.backoff = AdaptiveBackoff(min_period, max_period)
        self.log = logger or log

    async def scrape(self) -> int:
        """
        Runs one reconciliation pass, in the order the daemon lists torrents.

        Returns:
            The number of completions detected.
        """
        completions = 0
        for tx in await self.client.list_torrents():
            torrent = Torrent.from_daemon(tx)
            if not await self.store.upsert_torrent(torrent):
                continue

            completions += 1
            self.log.info(f"[bold green]Completed:[/bold green] {torrent.name}")
            try:
                self.completed_queue.put_nowait(torrent)
            except asyncio.QueueFull:
                self.log.warning(
                    f"[yellow]Completion queue is full, dropping notification for "
                    f"'{torrent.name}'[/yellow]"
                )
        return completions

    async def run(self, stop_event: asyncio.Event) -> None:
        """Scrapes until `stop_event` is set, backing off while passes fail."""
        self.log.info("Scrape loop started")
        while not stop_event.is_set():
            try:
                await self.scrape()
                self.backoff.success()
            except CourierError as e:
                period = self.backoff.failure()
                self.log.error(f"Scrape failed, retrying in {period:.1f}s: {e}")

            if await sleep_until_stopped(stop_event, self.backoff.current):
                break
        self.log.info("Scrape loop stopped")
