"""Tests for torrent models and the downloading/completed classification."""

from datetime import datetime, timezone

from conftest import make_daemon_torrent
from torrent_courier.api.torrents import completed, downloading
from torrent_courier.models.torrent import (
    DaemonTorrent,
    Torrent,
    TorrentMetadata,
    TorrentStatus,
)


class TestFromRpc:
    def test_maps_daemon_fields(self):
        tx = DaemonTorrent.from_rpc(
            {
                "id": 5,
                "name": "Show",
                "hashString": "deadbeef",
                "status": 4,
                "percentDone": 0.25,
                "sizeWhenDone": 400,
                "downloadedEver": 100,
                "uploadedEver": 7,
                "leftUntilDone": 300,
                "rateDownload": 50,
                "eta": 6,
                "addedDate": 1700000000,
                "doneDate": 0,
                "magnetLink": "magnet:?dn=Show",
            }
        )
        assert tx.id == 5
        assert tx.status == TorrentStatus.DOWNLOAD
        assert tx.total_size == 400
        assert tx.downloaded == 100
        assert tx.eta == 6
        assert tx.magnet_link == "magnet:?dn=Show"

    def test_negative_eta_is_unknown(self):
        assert DaemonTorrent.from_rpc({"id": 1, "eta": -1}).eta is None
        assert DaemonTorrent.from_rpc({"id": 1, "eta": -2}).eta is None


class TestClassification:
    def test_downloading_excludes_stopped_and_finished(self):
        torrents = [
            make_daemon_torrent(1, downloaded=500),
            make_daemon_torrent(2, downloaded=1000),
            make_daemon_torrent(3, downloaded=500, status=TorrentStatus.STOPPED),
        ]
        assert list(downloading(torrents)) == [1]

    def test_idle_torrent_has_no_eta(self):
        tx = make_daemon_torrent(1, downloaded=500)
        tx.eta = 120
        tx.rate_download = 0
        assert downloading([tx])[1].eta is None

    def test_missing_eta_is_estimated_from_rate(self):
        tx = make_daemon_torrent(1, downloaded=500)
        tx.rate_download = 100
        assert downloading([tx])[1].eta == 5

    def test_completed_requires_every_byte(self):
        torrents = [
            make_daemon_torrent(1, downloaded=999),
            make_daemon_torrent(2, downloaded=1000),
        ]
        assert [t.id for t in completed(torrents)] == [2]


class TestTorrent:
    def test_from_daemon_uses_done_date(self):
        done = int(datetime(2024, 2, 1, tzinfo=timezone.utc).timestamp())
        torrent = Torrent.from_daemon(
            make_daemon_torrent(9, downloaded=1000, done_date=done)
        )
        assert torrent.id == "9"
        assert torrent.completed_at == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert torrent.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_from_daemon_stamps_full_torrent_without_done_date(self):
        torrent = Torrent.from_daemon(make_daemon_torrent(9, downloaded=1000))
        assert torrent.completed_at is not None

    def test_from_daemon_incomplete(self):
        torrent = Torrent.from_daemon(make_daemon_torrent(9, downloaded=10))
        assert torrent.completed_at is None

    def test_str_in_progress(self):
        torrent = Torrent.from_daemon(make_daemon_torrent(9, name="Show", downloaded=425))
        assert str(torrent) == "Show: 42% downloaded"

    def test_str_done_uses_friendly_name(self):
        torrent = Torrent.from_daemon(make_daemon_torrent(9, name="Show", downloaded=1000))
        torrent.metadata = TorrentMetadata(friendly_name="My Show")
        assert str(torrent) == "My Show: downloaded"
        assert torrent.display_name == "My Show"

    def test_status_label(self):
        assert TorrentStatus.DOWNLOAD_WAIT.label == "download wait"
