"""Tests for the scrape loop's reconciliation and completion hand-off."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from aiohttp.test_utils import TestServer

from conftest import FakeDaemon, make_daemon_torrent
from torrent_courier.api.client import TransmissionClient
from torrent_courier.commands import AddTorrentCommand
from torrent_courier.core.scraper import ScrapeLoop
from torrent_courier.exceptions import RPCError
from torrent_courier.storage.store import SQLiteStore

DONE = int(datetime(2024, 3, 1, tzinfo=timezone.utc).timestamp())


class FakeClient:
    def __init__(self, *torrents):
        self.torrents = list(torrents)
        self.calls = 0

    async def list_torrents(self, *ids):
        self.calls += 1
        return list(self.torrents)


@pytest.mark.asyncio
async def test_completion_signalled_exactly_once(store: SQLiteStore):
    client = FakeClient(make_daemon_torrent(7, name="Show", downloaded=100))
    queue: asyncio.Queue = asyncio.Queue(maxsize=10)
    loop = ScrapeLoop(client, store, queue)

    assert await loop.scrape() == 0
    assert queue.empty()

    client.torrents = [make_daemon_torrent(7, name="Show", downloaded=1000, done_date=DONE)]
    assert await loop.scrape() == 1
    assert await loop.scrape() == 0

    assert queue.qsize() == 1
    completed = queue.get_nowait()
    assert completed.id == "7"
    assert completed.name == "Show"


@pytest.mark.asyncio
async def test_completed_at_is_never_moved(store: SQLiteStore):
    client = FakeClient(make_daemon_torrent(7, downloaded=100))
    loop = ScrapeLoop(client, store, asyncio.Queue())
    await loop.scrape()

    client.torrents = [make_daemon_torrent(7, downloaded=1000, done_date=DONE)]
    await loop.scrape()
    client.torrents = [make_daemon_torrent(7, downloaded=1000, done_date=DONE + 3600)]
    await loop.scrape()

    stored = await store.get_torrent("7")
    assert stored.completed_at == datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_full_queue_drops_event_without_blocking(store: SQLiteStore):
    client = FakeClient(make_daemon_torrent(7, downloaded=100))
    queue: asyncio.Queue = asyncio.Queue(maxsize=1)
    queue.put_nowait("stalled")
    loop = ScrapeLoop(client, store, queue)
    await loop.scrape()

    client.torrents = [make_daemon_torrent(7, downloaded=1000, done_date=DONE)]
    completions = await asyncio.wait_for(loop.scrape(), timeout=2)

    assert completions == 1
    assert queue.qsize() == 1
    assert queue.get_nowait() == "stalled"


@pytest.mark.asyncio
async def test_torrents_stored_in_daemon_order():
    store = AsyncMock()
    store.upsert_torrent.return_value = False
    client = FakeClient(
        make_daemon_torrent(3), make_daemon_torrent(1), make_daemon_torrent(2)
    )
    await ScrapeLoop(client, store, asyncio.Queue()).scrape()

    ids = [call.args[0].id for call in store.upsert_torrent.await_args_list]
    assert ids == ["3", "1", "2"]


# ── Run loop ────────────────────────────────


@pytest.mark.asyncio
async def test_run_backs_off_on_failure(store: SQLiteStore):
    client = FakeClient()
    client.list_torrents = AsyncMock(side_effect=RPCError("daemon down"))
    loop = ScrapeLoop(client, store, asyncio.Queue(), min_period=0.01, max_period=0.04)
    stop_event = asyncio.Event()

    task = asyncio.create_task(loop.run(stop_event))
    await asyncio.sleep(0.1)
    stop_event.set()
    await asyncio.wait_for(task, timeout=2)

    assert client.list_torrents.await_count >= 2
    assert loop.backoff.current > 0.01


@pytest.mark.asyncio
async def test_run_returns_immediately_when_already_stopped(store: SQLiteStore):
    client = FakeClient()
    stop_event = asyncio.Event()
    stop_event.set()

    await asyncio.wait_for(ScrapeLoop(client, store, asyncio.Queue()).run(stop_event), 1)

    assert client.calls == 0


@pytest.mark.asyncio
async def test_run_survives_malformed_daemon_entries(
    store: SQLiteStore, fake_daemon: FakeDaemon
):
    fake_daemon.torrents = [{"name": "no id here"}]
    stop_event = asyncio.Event()
    async with TestServer(fake_daemon.app()) as server:
        async with TransmissionClient(str(server.make_url("/")), timeout=5) as client:
            loop = ScrapeLoop(
                client, store, asyncio.Queue(), min_period=0.01, max_period=0.04
            )
            task = asyncio.create_task(loop.run(stop_event))
            await asyncio.sleep(0.2)

            assert not task.done()
            assert loop.backoff.current > 0.01

            fake_daemon.torrents = [
                {"id": 7, "name": "Show", "status": 4, "sizeWhenDone": 100}
            ]
            for _ in range(50):
                if await store.get_torrent("7") is not None:
                    break
                await asyncio.sleep(0.02)

            stop_event.set()
            await asyncio.wait_for(task, timeout=2)

    assert (await store.get_torrent("7")).name == "Show"


# ── Interaction with the add command ────────────────────────────────


@pytest.mark.asyncio
async def test_re_adding_finished_torrent_still_signals_completion(store: SQLiteStore):
    client = FakeClient(make_daemon_torrent(7, name="Show", downloaded=10))
    client.add_link = AsyncMock(return_value="7")
    queue: asyncio.Queue = asyncio.Queue(maxsize=10)
    loop = ScrapeLoop(client, store, queue)
    await loop.scrape()

    client.torrents = [make_daemon_torrent(7, name="Show", downloaded=1000, done_date=DONE)]
    await AddTorrentCommand(client, store).add("magnet:?xt=urn:btih:7&dn=Show")
    assert (await store.get_torrent("7")).completed_at is None

    assert await loop.scrape() == 1
    assert queue.qsize() == 1
