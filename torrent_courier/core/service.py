"""
The long-running service: wires the feed scanner, link downloader, scrape loop
and notification fan-out together and runs them until asked to stop.
"""

import asyncio
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

from torrent_courier.api.client import TransmissionClient
from torrent_courier.commands import (
    AddTorrentCommand,
    CommandRegistry,
    ListDownloadsCommand,
    NotifyMeCommand,
    SubscribeDownloadsCommand,
)
from torrent_courier.models.config import CourierConfig
from torrent_courier.notify import (
    CompletionDispatcher,
    LoggingSink,
    NotificationSink,
    PrivateMessenger,
    SubscriptionSet,
)
from torrent_courier.storage.base import TorrentStore
from torrent_courier.storage.config_manager import ConfigManager
from torrent_courier.storage.store import SQLiteStore

from .downloader import LinkDownloader
from .history import MemoryHistory
from .scanner import FeedScanner
from .scraper import ScrapeLoop

log = logging.getLogger(__name__)


class CourierService:
    """Owns every component and the tasks that run them."""

    LINK_QUEUE_SIZE = 100
    COMPLETED_QUEUE_SIZE = 10

    def __init__(
        self,
        config: CourierConfig,
        config_manager: ConfigManager,
        sink: Optional[NotificationSink] = None,
        store: Optional[TorrentStore] = None,
        client: Optional[TransmissionClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.config_manager = config_manager
        self.log = logger or log
        self.stop_event = asyncio.Event()

        self.client = client or TransmissionClient(
            config.daemon_url,
            download_dir=config.download_dir,
            timeout=config.rpc_timeout,
            max_session_retries=config.max_session_retries,
            username=config.daemon_username,
            password=config.daemon_password,
            logger=self.log.getChild("daemon"),
        )
        self.store = store or SQLiteStore(Path(config.database_path))
        self.sink = sink or LoggingSink(logger=self.log.getChild("sink"))

        self.link_queue: asyncio.Queue = asyncio.Queue(maxsize=self.LINK_QUEUE_SIZE)
        self.completed_queue: asyncio.Queue = asyncio.Queue(
            maxsize=self.COMPLETED_QUEUE_SIZE
        )

        self.history = MemoryHistory(config.history_length)
        self.scanner = FeedScanner(
            self.history, timeout=config.feed_timeout, logger=self.log.getChild("scanner")
        )
        self.downloader = LinkDownloader(
            Path(config.local_download_dir), logger=self.log.getChild("downloader")
        )
        self.scraper = ScrapeLoop(
            self.client,
            self.store,
            self.completed_queue,
            min_period=config.scrape_min_period,
            max_period=config.scrape_max_period,
            logger=self.log.getChild("scraper"),
        )

        self.subscriptions = SubscriptionSet()
        self.messenger = PrivateMessenger(
            self.sink,
            self.store,
            ttl=timedelta(seconds=config.private_channel_ttl),
            logger=self.log.getChild("private"),
        )
        self.dispatcher = CompletionDispatcher(
            self.sink,
            self.store,
            self.messenger,
            self.subscriptions,
            logger=self.log.getChild("dispatcher"),
        )

        self.commands = CommandRegistry(logger=self.log.getChild("commands"))
        self.commands.register(
            AddTorrentCommand(self.client, self.store),
            ListDownloadsCommand(self.store),
            SubscribeDownloadsCommand(self.subscriptions),
            NotifyMeCommand(self.store, self.dispatcher, self.completed_queue),
        )
        self._tasks: list[asyncio.Task] = []

    def start(self) -> list[asyncio.Task]:
        """Starts one task per loop. Each runs until the stop event is set."""
        stop = self.stop_event
        self._tasks = [
            asyncio.create_task(
                self.scanner.run(
                    stop,
                    self.config.rss_period,
                    self.config_manager.load_subjects,
                    self.link_queue,
                ),
                name="scanner",
            ),
            asyncio.create_task(
                self.downloader.wait(stop, self.link_queue), name="downloader"
            ),
            asyncio.create_task(self.scraper.run(stop), name="scraper"),
            asyncio.create_task(
                self.messenger.run_gc(stop, self.config.gc_period), name="private-gc"
            ),
            *self.commands.start(stop),
        ]
        return self._tasks

    def stop(self) -> None:
        self.stop_event.set()

    async def shutdown(self) -> None:
        """Stops every task, aborting in-flight I/O, and closes HTTP sessions."""
        self.stop_event.set()
        for task in self._tasks:
            task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, Exception):
                self.log.error(f"Task '{task.get_name()}' failed: {result}")
        self._tasks = []

        await self.scanner.close()
        await self.downloader.close()
        await self.client.close()
        self.log.info("Service stopped")

    async def run(self) -> None:
        """
        Runs the service until `stop()` is called.

        The daemon is contacted once up front so an unreachable daemon fails
        start-up instead of being retried in the background.
        """
        try:
            await self.client.connect()
        except Exception:
            await self.client.close()
            raise
        self.log.info(f"Connected to daemon at {self.client.rpc_url}")
        self.start()
        try:
            await self.stop_event.wait()
        finally:
            await self.shutdown()
