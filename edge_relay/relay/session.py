import asyncio
import logging
import uuid
from enum import Enum
from typing import Callable, List, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from edge_relay.relay import metrics
from edge_relay.relay.events import (
    ClientClosed,
    ClientErrored,
    ClientMessage,
    Frame,
    RelayEvent,
    SessionShutdown,
    UpstreamClosed,
    UpstreamErrored,
    UpstreamMessage,
    UpstreamOpened,
)
from edge_relay.relay.upstream import UpstreamConnector
from edge_relay.utils.exception_logging import log_exception_with_details
from edge_relay.vars import MAX_PENDING_MESSAGES

logger = logging.getLogger("uvicorn.error")

UPSTREAM_ERROR_REASON = "Upstream connection error"
CLIENT_ERROR_REASON = "Client connection error"
PENDING_OVERFLOW_REASON = "Too many messages before upstream was ready"

# Close codes that must not appear in a close frame, and what goes on the wire instead
_UNSENDABLE_CLOSE_CODES = {1005: 1000, 1006: 1011, 1015: 1011}


def wire_close_code(code: Optional[int]) -> int:
    if code is None:
        return 1000
    return _UNSENDABLE_CLOSE_CODES.get(code, code)


class RelayState(str, Enum):
    CONNECTING = "connecting"
    RELAYING = "relaying"
    CLOSED = "closed"


class RelaySession:
    """
    One client WebSocket paired with one upstream connection.

    The client reader and the upstream connector run as separate tasks and only
    post events to ``self.events``; ``run()`` handles those events one at a time,
    so the state and the pending queue are never touched concurrently. Client
    frames received before the upstream is open are kept in ``pending`` and
    drained once, in arrival order, when the upstream reports it is open.
    """

    def __init__(
        self,
        websocket: WebSocket,
        target_url: str,
        connector_factory: Callable[..., UpstreamConnector] = UpstreamConnector,
        max_pending: int = MAX_PENDING_MESSAGES,
    ):
        self.session_id = uuid.uuid4().hex
        self.websocket = websocket
        self.target_url = target_url
        self.max_pending = max_pending
        self.state = RelayState.CONNECTING
        self.pending: List[Frame] = []
        self.drained = False
        self.events: asyncio.Queue = asyncio.Queue()
        self.upstream = connector_factory(target_url, self.post)
        self._client_closed = False
        self._tasks: List[asyncio.Task] = []
        self.closed = asyncio.Event()

    def post(self, event: RelayEvent):
        self.events.put_nowait(event)

    def shutdown(self, code: int = 1001, reason: str = "Server shutting down"):
        self.post(SessionShutdown(code, reason))

    @property
    def client_open(self) -> bool:
        return (
            not self._client_closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def run(self):
        await self.websocket.accept()
        metrics.SESSIONS_TOTAL.inc()
        metrics.ACTIVE_SESSIONS.inc()
        self._tasks = [
            asyncio.create_task(self.upstream.run()),
            asyncio.create_task(self._read_client()),
        ]
        try:
            while self.state is not RelayState.CLOSED:
                event = await self.events.get()
                await self.handle(event)
        finally:
            await self._teardown()
            metrics.ACTIVE_SESSIONS.dec()
            self.closed.set()
        logger.info(f"[Relay] Session {self.session_id} closed")

    async def handle(self, event: RelayEvent):
        if self.state is RelayState.CLOSED:
            return
        if isinstance(event, ClientMessage):
            await self._on_client_message(event.data)
        elif isinstance(event, UpstreamOpened):
            await self._on_upstream_opened()
        elif isinstance(event, UpstreamMessage):
            await self._on_upstream_message(event.data)
        elif isinstance(event, UpstreamClosed):
            logger.info(
                f"[Relay] Upstream closed session {self.session_id}: "
                f"code={event.code} reason={event.reason!r}"
            )
            await self._close_client(event.code, event.reason)
            self.state = RelayState.CLOSED
        elif isinstance(event, ClientClosed):
            logger.info(
                f"[Relay] Client closed session {self.session_id}: "
                f"code={event.code} reason={event.reason!r}"
            )
            self._client_closed = True
            await self._close_upstream(event.code, event.reason)
            self.state = RelayState.CLOSED
        elif isinstance(event, UpstreamErrored):
            metrics.UPSTREAM_ERRORS.inc()
            log_exception_with_details(
                logger, f"[Relay] Upstream error in {self.session_id}:", event.error
            )
            await self._close_client(1011, UPSTREAM_ERROR_REASON)
            self.state = RelayState.CLOSED
        elif isinstance(event, ClientErrored):
            log_exception_with_details(
                logger, f"[Relay] Client error in {self.session_id}:", event.error
            )
            self._client_closed = True
            await self._close_upstream(1011, CLIENT_ERROR_REASON)
            self.state = RelayState.CLOSED
        elif isinstance(event, SessionShutdown):
            await self._close_client(event.code, event.reason)
            await self._close_upstream(event.code, event.reason)
            self.state = RelayState.CLOSED

    async def _on_client_message(self, data: Frame):
        if self.state is RelayState.CONNECTING:
            if len(self.pending) >= self.max_pending:
                logger.warning(
                    f"[Relay] Session {self.session_id} buffered {len(self.pending)} "
                    "messages without an upstream connection, closing"
                )
                await self._close_client(1008, PENDING_OVERFLOW_REASON)
                self.state = RelayState.CLOSED
                return
            self.pending.append(data)
            return
        await self._send_upstream(data)

    async def _on_upstream_opened(self):
        if self.state is not RelayState.CONNECTING:
            return
        pending, self.pending = self.pending, []
        logger.info(
            f"[Relay] Upstream open for session {self.session_id}, "
            f"sending {len(pending)} pending messages"
        )
        for data in pending:
            await self._send_upstream(data)
        self.drained = True
        self.state = RelayState.RELAYING

    async def _send_upstream(self, data: Frame):
        if not self.upstream.is_open:
            metrics.FRAMES_DROPPED.labels(metrics.CLIENT_TO_UPSTREAM).inc()
            logger.warning(
                f"[Relay] Upstream not open, dropping client message in {self.session_id}"
            )
            return
        try:
            await self.upstream.send(data)
            metrics.FRAMES_FORWARDED.labels(metrics.CLIENT_TO_UPSTREAM).inc()
        except Exception as e:
            metrics.FRAMES_DROPPED.labels(metrics.CLIENT_TO_UPSTREAM).inc()
            log_exception_with_details(
                logger,
                f"[Relay] Error sending to upstream in {self.session_id}:",
                e,
                logging.WARNING,
            )

    async def _on_upstream_message(self, data: Frame):
        if not self.client_open:
            metrics.FRAMES_DROPPED.labels(metrics.UPSTREAM_TO_CLIENT).inc()
            return
        try:
            if isinstance(data, str):
                await self.websocket.send_text(data)
            else:
                await self.websocket.send_bytes(data)
            metrics.FRAMES_FORWARDED.labels(metrics.UPSTREAM_TO_CLIENT).inc()
        except Exception as e:
            metrics.FRAMES_DROPPED.labels(metrics.UPSTREAM_TO_CLIENT).inc()
            log_exception_with_details(
                logger,
                f"[Relay] Error forwarding to client in {self.session_id}:",
                e,
                logging.WARNING,
            )

    async def _close_client(self, code: int, reason: str):
        if not self.client_open:
            return
        self._client_closed = True
        try:
            await self.websocket.close(code=wire_close_code(code), reason=reason)
        except Exception as e:
            logger.debug(f"[Relay] Closing client of {self.session_id} failed: {e}")

    async def _close_upstream(self, code: int, reason: str):
        if not self.upstream.is_open:
            return
        try:
            await self.upstream.close(wire_close_code(code), reason)
        except Exception as e:
            logger.debug(f"[Relay] Closing upstream of {self.session_id} failed: {e}")

    async def _read_client(self):
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    self.post(
                        ClientClosed(
                            message.get("code", 1000), message.get("reason") or ""
                        )
                    )
                    return
                text = message.get("text")
                self.post(ClientMessage(text if text is not None else message.get("bytes")))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.post(ClientErrored(e))

    async def _teardown(self):
        for task in self._tasks:
            if not task.done():
                task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                log_exception_with_details(
                    logger, f"[Relay] Task of {self.session_id} failed:", result
                )
