"""
SQLite implementation of the torrent and private-channel store.
"""

import asyncio
import logging
import sqlite3
from contextlib import closing, contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Iterator

from torrent_courier.exceptions import StoreError
from torrent_courier.models.notifications import NotificationRecipient, PrivateChannel
from torrent_courier.models.torrent import Torrent, TorrentMetadata

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS torrents (
    id TEXT PRIMARY KEY NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    status INTEGER NOT NULL DEFAULT 0,
    source_uri TEXT,
    total_size INTEGER NOT NULL DEFAULT 0,
    downloaded INTEGER NOT NULL DEFAULT 0,
    uploaded INTEGER NOT NULL DEFAULT 0,
    friendly_name TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS torrent_labels (
    torrent_id TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (torrent_id, key)
);
CREATE TABLE IF NOT EXISTS torrent_categories (
    torrent_id TEXT NOT NULL,
    category TEXT NOT NULL,
    PRIMARY KEY (torrent_id, category)
);
CREATE TABLE IF NOT EXISTS torrent_notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    torrent_id TEXT NOT NULL,
    recipient_id TEXT,
    channel_id TEXT
);
CREATE INDEX IF NOT EXISTS idx_notifications_torrent
    ON torrent_notifications(torrent_id);
CREATE TABLE IF NOT EXISTS private_channels (
    id TEXT PRIMARY KEY NOT NULL,
    recipient_id TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    last_message_at TEXT NOT NULL
);
"""


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_text(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteStore:
    """
    A SQLite store for torrents, their notification requests, and private
    channels. Blocking calls run in worker threads behind a small semaphore.
    """

    MAX_NOTIFICATIONS = 100
    MAX_PRIVATE_CHANNELS = 100

    def __init__(self, db_path: Path, pool_size: int = 5):
        self.db_path = Path(db_path)
        self._connection_semaphore = asyncio.Semaphore(pool_size)
        self._initialize_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            return conn
        except sqlite3.Error as e:
            raise StoreError(f"Failed to connect to database '{self.db_path}': {e}") from e

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yields a connection whose statements commit together or not at all."""
        with closing(self._get_connection()) as conn:
            try:
                with conn:
                    yield conn
            except sqlite3.Error as e:
                raise StoreError(f"Database operation failed: {e}") from e

    def _initialize_db(self) -> None:
        """Creates the tables and indexes if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._transaction() as conn:
            conn.executescript(SCHEMA)
        log.debug(f"Database ready at '{self.db_path}'")

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection pool semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    # Torrents

    def _load_torrent(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Torrent:
        labels = {
            r["key"]: r["value"]
            for r in conn.execute(
                "SELECT key, value FROM torrent_labels WHERE torrent_id = ? ORDER BY rowid",
                (row["id"],),
            )
        }
        categories = [
            r["category"]
            for r in conn.execute(
                "SELECT category FROM torrent_categories WHERE torrent_id = ? "
                "ORDER BY rowid",
                (row["id"],),
            )
        ]
        return Torrent(
            id=row["id"],
            name=row["name"],
            created_at=_from_text(row["created_at"]),
            started_at=_from_text(row["started_at"]),
            completed_at=_from_text(row["completed_at"]),
            status=row["status"],
            source_uri=row["source_uri"] or "",
            total_size=row["total_size"],
            downloaded=row["downloaded"],
            uploaded=row["uploaded"],
            metadata=TorrentMetadata(
                friendly_name=row["friendly_name"],
                categories=categories,
                labels=labels,
            ),
        )

    def _get_torrent_sync(self, torrent_id: str) -> Torrent | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM torrents WHERE id = ?", (torrent_id,)
            ).fetchone()
            return self._load_torrent(conn, row) if row else None

    def _write_metadata(self, conn: sqlite3.Connection, torrent: Torrent) -> None:
        conn.execute("DELETE FROM torrent_labels WHERE torrent_id = ?", (torrent.id,))
        conn.execute(
            "DELETE FROM torrent_categories WHERE torrent_id = ?", (torrent.id,)
        )
        conn.executemany(
            "INSERT INTO torrent_labels (torrent_id, key, value) VALUES (?, ?, ?)",
            [(torrent.id, k, v) for k, v in torrent.metadata.labels.items()],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO torrent_categories (torrent_id, category) "
            "VALUES (?, ?)",
            [(torrent.id, c) for c in torrent.metadata.categories],
        )

    def _upsert_torrent_sync(self, torrent: Torrent) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM torrents WHERE id = ?", (torrent.id,)
            ).fetchone()
            existing = self._load_torrent(conn, row) if row else None

            incoming = replace(torrent)
            if incoming.metadata is None:
                incoming.metadata = (
                    existing.metadata if existing else TorrentMetadata()
                )
            if existing and existing.completed_at is not None:
                # A completion time is written once and never moved or cleared.
                incoming.completed_at = existing.completed_at

            if existing == incoming:
                return False

            values = (
                incoming.name,
                _to_text(incoming.created_at),
                _to_text(incoming.started_at),
                _to_text(incoming.completed_at),
                int(incoming.status),
                incoming.source_uri,
                incoming.total_size,
                incoming.downloaded,
                incoming.uploaded,
                incoming.metadata.friendly_name,
                incoming.id,
            )
            if existing:
                conn.execute(
                    "UPDATE torrents SET name = ?, created_at = ?, started_at = ?, "
                    "completed_at = ?, status = ?, source_uri = ?, total_size = ?, "
                    "downloaded = ?, uploaded = ?, friendly_name = ? WHERE id = ?",
                    values,
                )
            else:
                conn.execute(
                    "INSERT INTO torrents (name, created_at, started_at, completed_at, "
                    "status, source_uri, total_size, downloaded, uploaded, "
                    "friendly_name, id) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
            self._write_metadata(conn, incoming)

            return (
                existing is not None
                and existing.completed_at is None
                and incoming.completed_at is not None
            )

    async def upsert_torrent(self, torrent: Torrent) -> bool:
        """
        Inserts or updates a torrent.

        Unchanged records are not rewritten. Returns True only when the stored
        record had no completion time and the incoming one does; a torrent seen
        for the first time never counts as a completion.
        """
        return await self._run_in_executor(self._upsert_torrent_sync, torrent)

    async def get_torrent(self, torrent_id: str) -> Torrent | None:
        return await self._run_in_executor(self._get_torrent_sync, torrent_id)

    def _list_torrents_sync(self, limit: int) -> list[Torrent]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM torrents ORDER BY created_at LIMIT ?", (limit,)
            ).fetchall()
            return [self._load_torrent(conn, row) for row in rows]

    async def list_torrents(self, limit: int = 10) -> list[Torrent]:
        """Returns the oldest `limit` torrents by creation time."""
        return await self._run_in_executor(self._list_torrents_sync, limit)

    # Notification requests

    def _add_notification_sync(
        self, torrent_id: str, recipient_id: str | None, channel_id: str | None
    ) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO torrent_notifications (torrent_id, recipient_id, channel_id) "
                "VALUES (?, ?, ?)",
                (torrent_id, recipient_id, channel_id),
            )

    async def add_notification(
        self,
        torrent_id: str,
        recipient_id: str | None = None,
        channel_id: str | None = None,
    ) -> None:
        """Registers a recipient and/or channel to be told when a torrent completes."""
        if not recipient_id and not channel_id:
            raise ValueError("A notification needs a recipient_id or a channel_id.")
        await self._run_in_executor(
            self._add_notification_sync, torrent_id, recipient_id, channel_id
        )

    def _list_notification_recipients_sync(
        self, torrent_id: str
    ) -> list[NotificationRecipient]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT torrent_id, recipient_id, channel_id FROM torrent_notifications "
                "WHERE torrent_id = ? ORDER BY id LIMIT ?",
                (torrent_id, self.MAX_NOTIFICATIONS),
            ).fetchall()
        return [
            NotificationRecipient(
                torrent_id=row["torrent_id"],
                recipient_id=row["recipient_id"],
                channel_id=row["channel_id"],
            )
            for row in rows
        ]

    async def list_notification_recipients(
        self, torrent_id: str
    ) -> list[NotificationRecipient]:
        return await self._run_in_executor(
            self._list_notification_recipients_sync, torrent_id
        )

    def _delete_notifications_sync(self, torrent_id: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM torrent_notifications WHERE torrent_id = ?", (torrent_id,)
            )

    async def delete_notifications(self, torrent_id: str) -> None:
        await self._run_in_executor(self._delete_notifications_sync, torrent_id)

    # Private channels

    @staticmethod
    def _row_to_channel(row: sqlite3.Row) -> PrivateChannel:
        return PrivateChannel(
            id=row["id"],
            recipient_id=row["recipient_id"],
            created_at=_from_text(row["created_at"]),
            last_message_at=_from_text(row["last_message_at"]),
        )

    def _get_private_channel_sync(self, recipient_id: str) -> PrivateChannel | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM private_channels WHERE recipient_id = ?", (recipient_id,)
            ).fetchone()
        return self._row_to_channel(row) if row else None

    async def get_private_channel(self, recipient_id: str) -> PrivateChannel | None:
        return await self._run_in_executor(self._get_private_channel_sync, recipient_id)

    def _list_private_channels_sync(self) -> list[PrivateChannel]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM private_channels ORDER BY last_message_at LIMIT ?",
                (self.MAX_PRIVATE_CHANNELS,),
            ).fetchall()
        return [self._row_to_channel(row) for row in rows]

    async def list_private_channels(self) -> list[PrivateChannel]:
        """Returns up to MAX_PRIVATE_CHANNELS channels, least recently used first."""
        return await self._run_in_executor(self._list_private_channels_sync)

    def _upsert_private_channel_sync(self, channel: PrivateChannel) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO private_channels (id, recipient_id, created_at, last_message_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET recipient_id = excluded.recipient_id, "
                "last_message_at = excluded.last_message_at",
                (
                    channel.id,
                    channel.recipient_id,
                    _to_text(channel.created_at),
                    _to_text(channel.last_message_at),
                ),
            )

    async def upsert_private_channel(self, channel: PrivateChannel) -> None:
        await self._run_in_executor(self._upsert_private_channel_sync, channel)

    def _delete_private_channel_sync(self, channel_id: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM private_channels WHERE id = ?", (channel_id,))

    async def delete_private_channel(self, channel_id: str) -> None:
        await self._run_in_executor(self._delete_private_channel_sync, channel_id)
