"""
Handles the plain HTTP download of links discovered by the feed scanner.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp
from pathvalidate import sanitize_filename

from torrent_courier.models.subject import DiscoveredLink
from torrent_courier.utils.backoff import get_until_stopped

log = logging.getLogger(__name__)


class LinkDownloader:
    """A single sequential worker that saves each discovered link under `base_dir`."""

    CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        base_dir: Path,
        timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_dir = Path(base_dir)
        self.timeout = aiohttp.ClientTimeout(total=timeout, sock_connect=15, sock_read=90)
        self.log = logger or log
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Accept-Encoding": "gzip, deflate"},
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def destination_for(self, link: DiscoveredLink) -> Path:
        """Returns where `link` is saved. The name is made safe for the filesystem."""
        name = sanitize_filename(link.name, replacement_text="_") or "download"
        return self.base_dir / name

    async def download(self, link: DiscoveredLink) -> Path:
        """Streams one link to disk and returns the written path."""
        destination = self.destination_for(link)
        await asyncio.to_thread(os.makedirs, self.base_dir, exist_ok=True)

        temp_path = destination.with_name(f"{destination.name}.tmp")

        session = await self._get_session()
        try:
            async with session.get(link.url, allow_redirects=True) as response:
                response.raise_for_status()
                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
            await asyncio.to_thread(os.replace, temp_path, destination)
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
        return destination

    async def wait(self, stop_event: asyncio.Event, queue: asyncio.Queue) -> None:
        """
        Consumes `queue` until `stop_event` is set.

        Failed downloads are logged and not retried.
        """
        self.log.info(f"Link downloader saving into '{self.base_dir}'")
        while True:
            link: DiscoveredLink | None = await get_until_stopped(stop_event, queue)
            if link is None:
                break
            try:
                path = await self.download(link)
                self.log.info(f"[green]Downloaded[/green] '{link.name}' to '{path}'")
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                self.log.error(f"Failed to download '{link.name}' from {link.url}: {e}")
            finally:
                queue.task_done()
        self.log.info("Link downloader stopped")
