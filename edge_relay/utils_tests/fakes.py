import asyncio
from types import SimpleNamespace

from starlette.websockets import WebSocketState

from edge_relay.relay.events import (
    UpstreamClosed,
    UpstreamErrored,
    UpstreamMessage,
    UpstreamOpened,
)


async def settle(rounds: int = 50):
    """Let every runnable task progress until the event loop is idle."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClientWebSocket:
    """Stands in for a Starlette WebSocket on the client side of a relay session."""

    def __init__(self, headers=None, path="/ws", query="", extensions=None):
        self.headers = {"upgrade": "websocket"} if headers is None else headers
        self.url = SimpleNamespace(path=path, query=query)
        self.scope = {"type": "websocket", "extensions": extensions or {}}
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.accepted = False
        self.sent = []
        self.close_calls = []
        self.denial = None

    def client_sends(self, data):
        key = "text" if isinstance(data, str) else "bytes"
        self.inbound.put_nowait({"type": "websocket.receive", key: data})

    def client_disconnects(self, code: int = 1000, reason: str = ""):
        self.inbound.put_nowait(
            {"type": "websocket.disconnect", "code": code, "reason": reason}
        )

    def client_fails(self, error: Exception):
        self.inbound.put_nowait(error)

    async def accept(self):
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def receive(self):
        message = await self.inbound.get()
        if isinstance(message, Exception):
            raise message
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_text(self, data: str):
        self.sent.append(data)

    async def send_bytes(self, data: bytes):
        self.sent.append(data)

    async def close(self, code: int = 1000, reason=None):
        self.close_calls.append((code, reason))
        self.application_state = WebSocketState.DISCONNECTED

    async def send_denial_response(self, response):
        self.denial = response
        self.application_state = WebSocketState.DISCONNECTED


class FakeUpstreamConnector:
    """Upstream connection driven by the test instead of the network."""

    def __init__(self, url, emit, open_timeout=None):
        self.url = url
        self.emit = emit
        self.is_open = False
        self.sent = []
        self.closed_with = None
        self.failing_payloads = set()
        self.cancelled = False

    async def run(self):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise

    def open(self):
        self.is_open = True
        self.emit(UpstreamOpened())

    def deliver(self, data):
        self.emit(UpstreamMessage(data))

    def remote_close(self, code: int, reason: str = ""):
        self.is_open = False
        self.emit(UpstreamClosed(code, reason))

    def fail(self, error: Exception):
        self.is_open = False
        self.emit(UpstreamErrored(error))

    async def send(self, data):
        if data in self.failing_payloads:
            raise RuntimeError(f"cannot send {data!r}")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed_with = (code, reason)
        self.is_open = False


class EchoUpstreamConnector(FakeUpstreamConnector):
    """Opens as soon as it runs and answers every frame with ``echo:<frame>``."""

    async def run(self):
        self.open()
        await super().run()

    async def send(self, data):
        await super().send(data)
        if data == "bye":
            self.remote_close(1000, "done")
        else:
            self.deliver(f"echo:{data}")
