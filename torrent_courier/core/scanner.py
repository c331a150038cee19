"""
Periodically fetches each subject's feed and emits the items that match it and
have not been seen before.
"""

import asyncio
import logging
from typing import Callable, Iterable, Optional

import aiohttp
import feedparser

from torrent_courier.core.history import MemoryHistory
from torrent_courier.exceptions import CourierError, FeedError
from torrent_courier.models.subject import DiscoveredLink, Subject
from torrent_courier.utils.backoff import sleep_until_stopped

log = logging.getLogger(__name__)


class FeedScanner:
    """Turns subject feeds into a stream of new DiscoveredLinks."""

    def __init__(
        self,
        history: MemoryHistory,
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the scanner.

        Args:
            history: Dedup cache of item titles already emitted.
            timeout: Total timeout in seconds for a single feed fetch.
            logger: Logger to use instead of the module logger.
        """
        self.history = history
        self.timeout = timeout
        self.log = logger or log
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/rss+xml, application/atom+xml, */*"}
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def fetch_feed(self, subject: Subject) -> list[dict]:
        """
        Fetches and parses one subject's feed.

        Returns:
            The feed entries, each exposing at least 'title' and 'link'.

        Raises:
            FeedError: If the feed cannot be fetched or parsed.
        """
        url = subject.url
        session = await self._get_session()
        try:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                response.raise_for_status()
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FeedError(f"Failed to fetch feed for '{subject.name}' ({url}): {e}") from e

        feed = await asyncio.to_thread(feedparser.parse, body)
        if feed.bozo and not feed.entries:
            raise FeedError(
                f"Failed to parse feed for '{subject.name}' ({url}): "
                f"{feed.get('bozo_exception', 'malformed feed')}"
            )
        return feed.entries

    async def process_subjects(
        self, subjects: Iterable[Subject], queue: asyncio.Queue
    ) -> int:
        """
        Scans every subject in order and queues the new matching items.

        A failing subject aborts the rest of the scan; the error propagates to
        the caller. The history is trimmed exactly once per call either way.

        Returns:
            The number of links put on the queue.
        """
        emitted = 0
        try:
            for subject in subjects:
                for entry in await self.fetch_feed(subject):
                    title = entry.get("title", "")
                    link = entry.get("link", "")
                    if not title or not link:
                        continue
                    if subject.matches(title) and self.history.add(title):
                        self.log.info(f"[green]New item for '{subject.name}':[/green] {title}")
                        await queue.put(DiscoveredLink(name=title, url=link))
                        emitted += 1
        finally:
            evicted = self.history.cleanup()
            if evicted:
                self.log.debug(f"Evicted {evicted} entries from feed history")
        return emitted

    async def run(
        self,
        stop_event: asyncio.Event,
        period: float,
        load_subjects: Callable[[], list[Subject]],
        queue: asyncio.Queue,
    ) -> None:
        """
        Scans on a fixed period until `stop_event` is set.

        Subjects are reloaded through `load_subjects` on every tick. Errors are
        logged and the next tick proceeds as usual.
        """
        self.log.info(f"Feed scanner started, scanning every {period:.0f}s")
        while not stop_event.is_set():
            try:
                subjects = load_subjects()
                emitted = await self.process_subjects(subjects, queue)
                self.log.debug(
                    f"Scanned {len(subjects)} subject(s), queued {emitted} new link(s)"
                )
            except CourierError as e:
                self.log.error(f"Feed scan failed: {e}")

            if await sleep_until_stopped(stop_event, period):
                break
        self.log.info("Feed scanner stopped")
