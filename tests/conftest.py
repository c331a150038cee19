"""Pytest fixtures and fakes for torrent-courier tests."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from aiohttp import web

from torrent_courier.models.torrent import DaemonTorrent, TorrentStatus
from torrent_courier.storage.store import SQLiteStore

SESSION_HEADER = "X-Transmission-Session-Id"


class FakeDaemon:
    """
    An in-process Transmission RPC endpoint.

    GETs and stale-token POSTs are answered with 409 and the current token,
    like the real daemon does.
    """

    def __init__(self):
        self.session_id = "token-1"
        self.gets = 0
        self.posts: list[dict] = []
        self.always_409 = False
        self.status_override: int | None = None
        self.results: dict[str, dict] = {}
        self.torrents: list[dict] = []
        self.next_id = 42

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/transmission/rpc", self._handle_get)
        app.router.add_post("/transmission/rpc", self._handle_post)
        return app

    def _conflict(self) -> web.Response:
        return web.Response(status=409, headers={SESSION_HEADER: self.session_id})

    async def _handle_get(self, request: web.Request) -> web.Response:
        self.gets += 1
        return self._conflict()

    async def _handle_post(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.posts.append({"body": body, "session": request.headers.get(SESSION_HEADER)})

        if self.always_409 or request.headers.get(SESSION_HEADER) != self.session_id:
            return self._conflict()
        if self.status_override is not None:
            return web.Response(status=self.status_override)

        method = body["method"]
        if method in self.results:
            return web.json_response({**self.results[method], "tag": body.get("tag")})

        arguments: dict = {}
        if method == "torrent-get":
            ids = body["arguments"].get("ids")
            arguments["torrents"] = [
                t for t in self.torrents if ids is None or t["id"] in ids
            ]
        elif method == "torrent-add":
            arguments["torrent-added"] = {
                "id": self.next_id,
                "name": "Added",
                "hashString": "abc123",
            }
        elif method == "session-stats":
            arguments = {
                "activeTorrentCount": 1,
                "pausedTorrentCount": 2,
                "torrentCount": 3,
                "downloadSpeed": 1024,
                "uploadSpeed": 512,
                "cumulative-stats": {"downloadedBytes": 100, "uploadedBytes": 50},
                "current-stats": {"downloadedBytes": 10, "uploadedBytes": 5},
            }
        return web.json_response(
            {"result": "success", "arguments": arguments, "tag": body.get("tag")}
        )


class FakeSink:
    """A NotificationSink that records every call and fails for chosen channels."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.messages: list[tuple[str, str]] = []
        self.created: list[str] = []
        self.deleted: list[str] = []

    async def send_channel_message(self, channel_id: str, text: str) -> None:
        if channel_id in self.failing:
            raise RuntimeError(f"platform rejected message to {channel_id}")
        self.messages.append((channel_id, text))

    async def send_direct_message(self, recipient_id: str, text: str) -> str:
        channel_id = await self.create_direct_channel(recipient_id)
        await self.send_channel_message(channel_id, text)
        return channel_id

    async def create_direct_channel(self, recipient_id: str) -> str:
        channel_id = f"dm-{recipient_id}"
        self.created.append(channel_id)
        return channel_id

    async def delete_channel(self, channel_id: str) -> None:
        if channel_id in self.failing:
            raise RuntimeError(f"platform refused to delete {channel_id}")
        self.deleted.append(channel_id)


def rss_feed(*items: tuple[str, str]) -> str:
    """Builds a minimal RSS 2.0 document from (title, link) pairs."""
    entries = "".join(
        f"<item><title>{title}</title><link>{link}</link></item>" for title, link in items
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Test feed</title>'
        "<link>http://example.invalid/</link><description>test</description>"
        f"{entries}</channel></rss>"
    )


def make_daemon_torrent(
    torrent_id: int = 7,
    name: str = "Some.Show.S01",
    total: int = 1000,
    downloaded: int = 0,
    done_date: int = 0,
    status: int = TorrentStatus.DOWNLOAD,
) -> DaemonTorrent:
    return DaemonTorrent(
        id=torrent_id,
        name=name,
        status=status,
        percent_done=downloaded / total if total else 0.0,
        total_size=total,
        downloaded=downloaded,
        left_until_done=total - downloaded,
        added_date=int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()),
        done_date=done_date,
        magnet_link=f"magnet:?xt=urn:btih:{torrent_id:040d}&dn={name}",
    )


@pytest.fixture
def fake_daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "courier.sqlite")
