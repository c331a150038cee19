"""
Handles the daemon's rotating session token (X-Transmission-Session-Id).
"""

import asyncio
import logging
from typing import TYPE_CHECKING

import aiohttp

from torrent_courier.exceptions import RPCError, SessionError

if TYPE_CHECKING:
    from .client import TransmissionClient

log = logging.getLogger(__name__)


class SessionAuthenticator:
    """
    Acquires and refreshes the session token for a TransmissionClient.

    All reads and writes of the token happen under one lock, so a refresh
    triggered by a 409 in one task cannot race another task that is about to
    send the stale token.
    """

    def __init__(self, api_client: "TransmissionClient"):
        """
        Initializes the authenticator.

        Args:
            api_client: A reference to the main TransmissionClient instance.
        """
        self._api_client = api_client
        self._lock = asyncio.Lock()

    async def ensure_session(self) -> str:
        """Returns the current token, acquiring one first if there is none."""
        async with self._lock:
            if not self._api_client.session_id:
                await self._acquire()
            return self._api_client.session_id

    async def refresh(self, stale_session_id: str) -> str:
        """
        Replaces a token the daemon rejected.

        If another task already replaced `stale_session_id`, the newer token is
        returned without contacting the daemon again.
        """
        async with self._lock:
            if self._api_client.session_id == stale_session_id:
                log.debug("Session token rejected by daemon, refreshing")
                await self._acquire()
            return self._api_client.session_id

    async def _acquire(self) -> None:
        """Issues a GET to the RPC endpoint and stores the token it hands out."""
        client = self._api_client
        http = await client.http_session()
        log.debug("Getting session")
        try:
            async with http.get(client.rpc_url) as r:
                session_id = r.headers.get(client.SESSION_HEADER, "")
                status = r.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RPCError(f"Failed to reach daemon at {client.rpc_url}: {e}") from e

        if not session_id:
            raise SessionError(
                f"Daemon response (status {status}) is missing the "
                f"{client.SESSION_HEADER} header."
            )
        client.session_id = session_id
