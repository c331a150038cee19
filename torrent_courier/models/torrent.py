"""
Data models for torrents as reported by the daemon and as persisted by the store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any


class TorrentStatus(IntEnum):
    """Torrent states as enumerated by the Transmission daemon."""

    STOPPED = 0
    CHECK_WAIT = 1
    CHECK = 2
    DOWNLOAD_WAIT = 3
    DOWNLOAD = 4
    SEED_WAIT = 5
    SEED = 6

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").lower()


def from_timestamp(value: int | float | None) -> datetime | None:
    """Converts a daemon unix timestamp to an aware UTC datetime (0 means unset)."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass
class DaemonTorrent:
    """A torrent exactly as returned by the daemon's 'torrent-get' method."""

    id: int
    name: str = ""
    hash_string: str = ""
    status: int = TorrentStatus.STOPPED
    percent_done: float = 0.0
    total_size: int = 0
    downloaded: int = 0
    uploaded: int = 0
    left_until_done: int = 0
    rate_download: int = 0
    eta: int | None = None
    added_date: int = 0
    start_date: int = 0
    done_date: int = 0
    magnet_link: str = ""

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "DaemonTorrent":
        """Builds a DaemonTorrent from one entry of the 'torrents' array."""
        eta = data.get("eta")
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            hash_string=data.get("hashString", ""),
            status=int(data.get("status", TorrentStatus.STOPPED)),
            percent_done=float(data.get("percentDone", 0.0)),
            total_size=int(data.get("sizeWhenDone", data.get("totalSize", 0))),
            downloaded=int(data.get("downloadedEver", 0)),
            uploaded=int(data.get("uploadedEver", 0)),
            left_until_done=int(data.get("leftUntilDone", 0)),
            rate_download=int(data.get("rateDownload", 0)),
            eta=int(eta) if eta is not None and eta >= 0 else None,
            added_date=int(data.get("addedDate", 0)),
            start_date=int(data.get("startDate", 0)),
            done_date=int(data.get("doneDate", 0)),
            magnet_link=data.get("magnetLink", ""),
        )


@dataclass
class TorrentMetadata:
    """User-supplied information attached to a torrent."""

    friendly_name: str = ""
    categories: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class Torrent:
    """The persisted view of a torrent."""

    id: str
    name: str
    created_at: datetime
    status: int = TorrentStatus.STOPPED
    source_uri: str = ""
    total_size: int = 0
    downloaded: int = 0
    uploaded: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    metadata: TorrentMetadata | None = None

    @classmethod
    def from_daemon(cls, tx: DaemonTorrent) -> "Torrent":
        """
        Converts a daemon record into the persisted model.

        The completion time is the daemon's done date. Torrents that report all
        bytes downloaded without a done date (e.g. added with existing data) are
        stamped with the current time; the store keeps the first stamp it sees.
        """
        completed_at = from_timestamp(tx.done_date)
        if completed_at is None and tx.total_size > 0 and tx.downloaded >= tx.total_size:
            completed_at = datetime.now(timezone.utc).replace(microsecond=0)
        return cls(
            id=str(tx.id),
            name=tx.name,
            created_at=from_timestamp(tx.added_date)
            or datetime.fromtimestamp(0, tz=timezone.utc),
            status=tx.status,
            source_uri=tx.magnet_link,
            total_size=tx.total_size,
            downloaded=tx.downloaded,
            uploaded=tx.uploaded,
            started_at=from_timestamp(tx.start_date),
            completed_at=completed_at,
        )

    @property
    def display_name(self) -> str:
        """The friendly name when one was given, otherwise the daemon's name."""
        if self.metadata and self.metadata.friendly_name:
            return self.metadata.friendly_name
        return self.name

    @property
    def percent_done(self) -> float:
        if self.total_size == 0:
            return 0.0
        return self.downloaded / self.total_size

    def __str__(self) -> str:
        percent = self.percent_done
        if percent >= 1:
            progress = "downloaded"
        else:
            progress = f"{int(percent * 100)}% downloaded"
        return f"{self.display_name}: {progress}"


@dataclass
class TransferStats:
    """One block of byte counters inside the daemon's session statistics."""

    uploaded_bytes: int = 0
    downloaded_bytes: int = 0
    files_added: int = 0
    session_count: int = 0
    seconds_active: int = 0

    @classmethod
    def from_rpc(cls, data: dict[str, Any] | None) -> "TransferStats":
        data = data or {}
        return cls(
            uploaded_bytes=int(data.get("uploadedBytes", 0)),
            downloaded_bytes=int(data.get("downloadedBytes", 0)),
            files_added=int(data.get("filesAdded", 0)),
            session_count=int(data.get("sessionCount", 0)),
            seconds_active=int(data.get("secondsActive", 0)),
        )


@dataclass
class SessionStats:
    """Result of the daemon's 'session-stats' method."""

    active_torrent_count: int = 0
    paused_torrent_count: int = 0
    torrent_count: int = 0
    download_speed: int = 0
    upload_speed: int = 0
    cumulative: TransferStats = field(default_factory=TransferStats)
    current: TransferStats = field(default_factory=TransferStats)

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "SessionStats":
        return cls(
            active_torrent_count=int(data.get("activeTorrentCount", 0)),
            paused_torrent_count=int(data.get("pausedTorrentCount", 0)),
            torrent_count=int(data.get("torrentCount", 0)),
            download_speed=int(data.get("downloadSpeed", 0)),
            upload_speed=int(data.get("uploadSpeed", 0)),
            cumulative=TransferStats.from_rpc(data.get("cumulative-stats")),
            current=TransferStats.from_rpc(data.get("current-stats")),
        )
