import asyncio
import logging
from typing import Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.protocol import State

from edge_relay.relay.events import (
    Frame,
    RelayEvent,
    UpstreamClosed,
    UpstreamErrored,
    UpstreamMessage,
    UpstreamOpened,
)
from edge_relay.utils import mask_url_secrets
from edge_relay.utils.exception_logging import format_exception_message
from edge_relay.vars import UPSTREAM_HOST, UPSTREAM_OPEN_TIMEOUT

logger = logging.getLogger("uvicorn.error")

# Close code reported when the connection dropped without a close frame
ABNORMAL_CLOSURE = 1006


def build_upstream_url(path: str, query: str = "", host: str = None) -> str:
    """
    Target address for a relayed connection. Only the path and query come from
    the inbound request; scheme and host are fixed so the relay cannot be used to
    reach arbitrary servers.
    """
    if not path.startswith("/"):
        path = "/" + path
    url = f"wss://{host or UPSTREAM_HOST}{path}"
    if query:
        url = f"{url}?{query}"
    return url


class UpstreamConnector:
    """
    Outbound WebSocket connection to the streaming endpoint.

    ``run()`` opens the connection and reports its lifecycle through ``emit``:
    UpstreamOpened once the handshake completes, UpstreamMessage per frame,
    UpstreamClosed when the peer or the network ends the connection, and
    UpstreamErrored when connecting or receiving fails. It only raises
    CancelledError.
    """

    def __init__(
        self,
        url: str,
        emit: Callable[[RelayEvent], None],
        open_timeout: Optional[float] = UPSTREAM_OPEN_TIMEOUT,
    ):
        self.url = url
        self.emit = emit
        self.open_timeout = open_timeout
        self.connection = None

    @property
    def is_open(self) -> bool:
        return self.connection is not None and self.connection.state is State.OPEN

    async def run(self):
        masked_url = mask_url_secrets(self.url)
        try:
            async with websockets.connect(
                self.url, max_size=None, open_timeout=self.open_timeout
            ) as connection:
                self.connection = connection
                logger.info(f"[Upstream] Connected to {masked_url}")
                self.emit(UpstreamOpened())
                try:
                    async for message in connection:
                        self.emit(UpstreamMessage(message))
                except ConnectionClosedError as e:
                    logger.debug(f"[Upstream] Connection to {masked_url} dropped: {e}")
            code = connection.close_code or ABNORMAL_CLOSURE
            reason = connection.close_reason or ""
            logger.info(f"[Upstream] Closed {masked_url} code={code} reason={reason!r}")
            self.emit(UpstreamClosed(code, reason))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                f"[Upstream] Error on {masked_url}: {format_exception_message(e)}"
            )
            self.emit(UpstreamErrored(e))

    async def send(self, data: Frame):
        if not self.is_open:
            raise ConnectionError("Upstream connection is not open")
        await self.connection.send(data)

    async def close(self, code: int = 1000, reason: str = ""):
        if self.connection is None:
            return
        try:
            await self.connection.close(code=code, reason=reason)
        except ConnectionClosed:
            pass
