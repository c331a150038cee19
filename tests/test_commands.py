"""Tests for the command registry and handlers."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_daemon_torrent
from torrent_courier.commands import (
    AddTorrentCommand,
    Capability,
    Command,
    CommandContext,
    CommandRegistry,
    ListDownloadsCommand,
    NotifyMeCommand,
    SubscribeDownloadsCommand,
)
from torrent_courier.exceptions import (
    CommandError,
    CommandNotFoundError,
    InvalidMagnetLinkError,
    UnexpectedTorrentCountError,
    UnknownCategoryError,
)
from torrent_courier.models.torrent import Torrent
from torrent_courier.notify import SubscriptionSet
from torrent_courier.storage.store import SQLiteStore

MAGNET = "magnet:?xt=urn:btih:0123456789abcdef&dn=Big+Buck+Bunny"


def _fake_client(*torrents):
    client = AsyncMock()
    client.add_link.return_value = "42"
    client.list_torrents.return_value = list(torrents) or [
        make_daemon_torrent(42, name="Big Buck Bunny", downloaded=0)
    ]
    return client


def _ctx(**options) -> CommandContext:
    return CommandContext(
        user_id="alice", channel_id="general", interaction_id="int-1", options=options
    )


# ── Registry ────────────────────────────────


class TestCommandRegistry:
    def _registry(self, store) -> CommandRegistry:
        registry = CommandRegistry()
        registry.register(
            AddTorrentCommand(_fake_client(), store),
            ListDownloadsCommand(store),
            SubscribeDownloadsCommand(SubscriptionSet()),
            NotifyMeCommand(store, AsyncMock(), asyncio.Queue()),
        )
        return registry

    def test_capabilities_file_handlers(self, store: SQLiteStore):
        registry = self._registry(store)

        assert registry.names == [
            "add-torrent",
            "list-downloads",
            "notify-me",
            "subscribe-downloads",
        ]
        assert registry.form_handlers == ["add-torrent"]
        assert registry.initializers == ["notify-me"]

    @pytest.mark.asyncio
    async def test_unknown_command(self, store: SQLiteStore):
        with pytest.raises(CommandNotFoundError):
            await self._registry(store).dispatch("nope", _ctx())

    @pytest.mark.asyncio
    async def test_unknown_form(self, store: SQLiteStore):
        with pytest.raises(CommandNotFoundError):
            await self._registry(store).dispatch_form("never-issued", _ctx())

    def test_nameless_command_rejected(self):
        with pytest.raises(ValueError):
            CommandRegistry().register(Command())

    @pytest.mark.asyncio
    async def test_start_runs_initializers(self):
        class Starter(Command):
            name = "starter"
            capabilities = Capability.BASIC | Capability.INITIALIZABLE

            def __init__(self):
                self.started = False

            async def on_start(self, stop_event):
                self.started = True
                await stop_event.wait()

        starter = Starter()
        registry = CommandRegistry()
        registry.register(starter)
        stop_event = asyncio.Event()

        tasks = registry.start(stop_event)
        await asyncio.sleep(0)
        stop_event.set()
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=2)

        assert starter.started


# ── Add torrent ────────────────────────────────


class TestAddTorrentCommand:
    @pytest.mark.asyncio
    async def test_form_then_submit(self, store: SQLiteStore):
        client = _fake_client()
        registry = CommandRegistry()
        registry.register(AddTorrentCommand(client, store))

        response = await registry.dispatch("add-torrent", _ctx(magnet=MAGNET))

        form = response.form
        assert form.custom_id == "int-1"
        fields = {f.custom_id: f for f in form.fields}
        assert fields["name"].value == "Big Buck Bunny"
        assert fields["link"].value == MAGNET

        submitted = await registry.dispatch_form(
            "int-1", _ctx(name="Bunny", category=" movie ", link=MAGNET)
        )

        assert submitted.content == "Thank you for sharing"
        client.add_link.assert_awaited_once_with(MAGNET, sub_dir="movie")
        client.list_torrents.assert_awaited_once_with("42")
        stored = await store.get_torrent("42")
        assert stored.metadata.friendly_name == "Bunny"
        assert stored.metadata.categories == ["MOVIE"]

        with pytest.raises(CommandNotFoundError):
            await registry.dispatch_form("int-1", _ctx(link=MAGNET))

    @pytest.mark.asyncio
    async def test_invalid_magnet(self, store: SQLiteStore):
        command = AddTorrentCommand(_fake_client(), store)
        with pytest.raises(InvalidMagnetLinkError):
            await command.handle(_ctx(magnet="http://example.invalid/file.torrent"))

    @pytest.mark.asyncio
    async def test_long_display_name_truncated(self, store: SQLiteStore):
        command = AddTorrentCommand(_fake_client(), store)
        response = await command.handle(_ctx(magnet="magnet:?dn=" + "x" * 150))
        assert len(response.form.fields[0].value) == 99

    @pytest.mark.asyncio
    async def test_unknown_category(self, store: SQLiteStore):
        client = _fake_client()
        command = AddTorrentCommand(client, store)
        with pytest.raises(UnknownCategoryError):
            await command.add(MAGNET, category="podcast")
        client.add_link.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_torrent_count(self, store: SQLiteStore):
        client = _fake_client()
        client.list_torrents.return_value = []
        command = AddTorrentCommand(client, store)
        with pytest.raises(UnexpectedTorrentCountError):
            await command.add(MAGNET)

    @pytest.mark.asyncio
    async def test_add_defaults_name_from_magnet(self, store: SQLiteStore):
        command = AddTorrentCommand(_fake_client(), store)
        torrent = await command.add(MAGNET)
        assert torrent.display_name == "Big Buck Bunny"
        assert torrent.metadata.categories == []


# ── Other commands ────────────────────────────────


@pytest.mark.asyncio
async def test_subscribe_toggles_channel():
    subscriptions = SubscriptionSet()
    command = SubscribeDownloadsCommand(subscriptions)

    first = await command.handle(_ctx())
    second = await command.handle(_ctx())

    assert first.title == "Successfully subscribed channel"
    assert second.title == "Successfully unsubscribed channel"
    assert await subscriptions.snapshot() == []


@pytest.mark.asyncio
async def test_list_downloads(store: SQLiteStore):
    command = ListDownloadsCommand(store)
    assert (await command.handle(_ctx())).content == "No downloads yet"

    await store.upsert_torrent(
        Torrent.from_daemon(make_daemon_torrent(1, name="Show", downloaded=500))
    )
    assert (await command.handle(_ctx())).content == "Show: 50% downloaded"


class TestNotifyMeCommand:
    @pytest.mark.asyncio
    async def test_registers_caller(self, store: SQLiteStore):
        await store.upsert_torrent(Torrent.from_daemon(make_daemon_torrent(7, name="Show")))
        command = NotifyMeCommand(store, AsyncMock(), asyncio.Queue())

        await command.handle(_ctx(torrent="7"))
        await command.handle(_ctx(torrent="7", here="yes"))

        recipients = await store.list_notification_recipients("7")
        assert [(r.recipient_id, r.channel_id) for r in recipients] == [
            ("alice", None),
            (None, "general"),
        ]

    @pytest.mark.asyncio
    async def test_unknown_torrent(self, store: SQLiteStore):
        command = NotifyMeCommand(store, AsyncMock(), asyncio.Queue())
        with pytest.raises(CommandError):
            await command.handle(_ctx(torrent="404"))

    @pytest.mark.asyncio
    async def test_already_completed(self, store: SQLiteStore):
        await store.upsert_torrent(
            Torrent.from_daemon(make_daemon_torrent(7, name="Show", downloaded=1000))
        )
        command = NotifyMeCommand(store, AsyncMock(), asyncio.Queue())

        response = await command.handle(_ctx(torrent="7"))

        assert response.content == "Show is already downloaded"
        assert await store.list_notification_recipients("7") == []

    @pytest.mark.asyncio
    async def test_on_start_runs_dispatcher(self, store: SQLiteStore):
        dispatcher = AsyncMock()
        queue: asyncio.Queue = asyncio.Queue()
        stop_event = asyncio.Event()

        await NotifyMeCommand(store, dispatcher, queue).on_start(stop_event)

        dispatcher.run.assert_awaited_once_with(stop_event, queue)
