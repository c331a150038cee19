"""
Async client for the Transmission daemon's JSON-RPC interface.
"""

import asyncio
import itertools
import logging
import posixpath
import time
from typing import Any, Dict, List, Optional

import aiohttp

from torrent_courier.exceptions import (
    ProtocolError,
    RPCError,
    SessionExhaustedError,
)
from torrent_courier.models.torrent import DaemonTorrent, SessionStats

from .session import SessionAuthenticator
from .torrents import downloading

log = logging.getLogger(__name__)


class TransmissionClient:
    """
    Async client for the Transmission RPC protocol.

    Every request is a POST of {"method", "arguments", "tag"} carrying the
    current session token. A 409 answer means the token rotated: the token is
    refreshed and the POST retried, up to `max_session_retries` POSTs per call.
    """

    RPC_PATH = "/transmission/rpc"
    SESSION_HEADER = "X-Transmission-Session-Id"
    TORRENT_FIELDS = [
        "id",
        "name",
        "hashString",
        "status",
        "percentDone",
        "sizeWhenDone",
        "downloadedEver",
        "uploadedEver",
        "leftUntilDone",
        "rateDownload",
        "eta",
        "addedDate",
        "startDate",
        "doneDate",
        "magnetLink",
    ]

    def __init__(
        self,
        root_url: str,
        download_dir: str = "/downloads/complete",
        timeout: float = 10.0,
        max_session_retries: int = 3,
        username: str = "",
        password: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the RPC client.

        Args:
            root_url: Base URL of the daemon, e.g. 'http://localhost:9091'.
            download_dir: Daemon-side directory new torrents are saved into.
            timeout: Total timeout in seconds applied to every HTTP request.
            max_session_retries: Maximum POST attempts per call when the daemon
                keeps answering 409.
            username: Optional RPC username (HTTP basic auth).
            password: Optional RPC password.
            logger: Logger to use instead of the module logger.
        """
        self.rpc_url = root_url.rstrip("/") + self.RPC_PATH
        self.download_dir = download_dir
        self.timeout = timeout
        self.max_session_retries = max_session_retries
        self.log = logger or log

        # State managed by the authenticator
        self.session_id: str = ""

        self._auth = aiohttp.BasicAuth(username, password) if username else None
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_guard = asyncio.Lock()
        self._authenticator = SessionAuthenticator(self)
        self._tags = itertools.count(1)

    @property
    def authenticator(self) -> SessionAuthenticator:
        """Provides access to the session token helper."""
        return self._authenticator

    async def http_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        async with self._session_guard:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    auth=self._auth,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    headers={"Accept": "application/json"},
                )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "TransmissionClient":
        await self.http_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Acquires a session token up front so bootstrap fails fast."""
        await self._authenticator.ensure_session()

    async def call_rpc(
        self, method: str, arguments: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Calls one RPC method and returns the response's 'arguments' object.

        Raises:
            SessionExhaustedError: If every attempt was answered with 409.
            RPCError: On transport failures or any other non-200 status.
            ProtocolError: If the response's 'result' is not 'success'.
        """
        http = await self.http_session()
        payload = {
            "method": method,
            "arguments": arguments or {},
            "tag": str(next(self._tags)),
        }

        for attempt in range(1, self.max_session_retries + 1):
            session_id = await self._authenticator.ensure_session()
            start_time = time.monotonic()
            try:
                async with http.post(
                    self.rpc_url,
                    json=payload,
                    headers={self.SESSION_HEADER: session_id},
                ) as r:
                    duration_ms = (time.monotonic() - start_time) * 1000
                    self.log.debug(
                        f"RPC {method} answered {r.status} in {duration_ms:.0f}ms "
                        f"(attempt {attempt}/{self.max_session_retries})"
                    )
                    if r.status == 409:
                        if attempt < self.max_session_retries:
                            await self._authenticator.refresh(session_id)
                        continue
                    if r.status != 200:
                        raise RPCError(
                            f"RPC '{method}' returned unexpected status code: {r.status}",
                            status=r.status,
                        )
                    body = await r.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.log.debug(f"RPC call to {method} failed: {e}")
                raise RPCError(f"RPC '{method}' failed: {e}") from e
            except ValueError as e:
                raise RPCError(f"RPC '{method}' returned invalid JSON: {e}") from e

            if not isinstance(body, dict):
                raise ProtocolError(method, "response body is not an object")
            result = body.get("result")
            if result != "success":
                raise ProtocolError(method, str(result))
            return body.get("arguments") or {}

        raise SessionExhaustedError(method, self.max_session_retries)

    # Public API Methods
    async def add_link(
        self, uri: str, sub_dir: Optional[str] = None, paused: bool = False
    ) -> str:
        """
        Adds a torrent by magnet link or URL.

        Args:
            uri: The magnet URI or .torrent URL.
            sub_dir: Optional directory below the configured download directory.
            paused: Add the torrent without starting it.

        Returns:
            The daemon-assigned ID of the new torrent, or of the existing one if
            the daemon reports a duplicate.
        """
        download_dir = self.download_dir
        if sub_dir:
            download_dir = posixpath.join(download_dir, sub_dir)

        arguments = await self.call_rpc(
            "torrent-add",
            {"filename": uri, "download-dir": download_dir, "paused": paused},
        )
        for key in ("torrent-added", "torrent-duplicate"):
            torrent = arguments.get(key)
            if torrent and "id" in torrent:
                torrent_id = str(torrent["id"])
                self.log.info(
                    f"Daemon reported {key} for '{torrent.get('name', uri)}' "
                    f"(id {torrent_id})"
                )
                return torrent_id
        raise ProtocolError("torrent-add", "response carried no torrent id")

    async def list_torrents(self, *ids: str) -> List[DaemonTorrent]:
        """
        Lists torrents with a fixed set of fields.

        Args:
            ids: Optional torrent IDs. When given, only those torrents are returned.
        """
        arguments: Dict[str, Any] = {"fields": self.TORRENT_FIELDS}
        if ids:
            arguments["ids"] = [int(torrent_id) for torrent_id in ids]
        response = await self.call_rpc("torrent-get", arguments)
        try:
            torrents = [DaemonTorrent.from_rpc(t) for t in response.get("torrents", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProtocolError("torrent-get", f"malformed torrent entry: {e!r}") from e
        if ids:
            wanted = {int(torrent_id) for torrent_id in ids}
            torrents = [t for t in torrents if t.id in wanted]
        return torrents

    async def get_downloading(self) -> Dict[int, DaemonTorrent]:
        """Returns all active, unfinished torrents keyed by ID."""
        return downloading(await self.list_torrents())

    async def session_stats(self) -> SessionStats:
        return SessionStats.from_rpc(await self.call_rpc("session-stats"))
