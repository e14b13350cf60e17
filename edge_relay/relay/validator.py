import logging
from typing import Mapping

from fastapi import WebSocket
from fastapi.responses import PlainTextResponse

from edge_relay.routing import wants_websocket

logger = logging.getLogger("uvicorn.error")

UPGRADE_REQUIRED_MESSAGE = "Expected WebSocket connection"
DENIAL_EXTENSION = "websocket.http.response"


def is_websocket_upgrade(headers: Mapping[str, str]) -> bool:
    """True only when the Upgrade header names the WebSocket protocol."""
    return wants_websocket(headers)


def reject_upgrade_response() -> PlainTextResponse:
    return PlainTextResponse(UPGRADE_REQUIRED_MESSAGE, status_code=400)


async def reject_upgrade(websocket: WebSocket) -> None:
    """
    Refuse a handshake before it is accepted. Servers implementing the ASGI
    denial-response extension get the 400 with its body; the others can only
    close the handshake, which they answer with a 403.
    """
    logger.warning(
        f"[Relay] Rejecting non-WebSocket request to {websocket.url.path}"
    )
    if DENIAL_EXTENSION in (websocket.scope.get("extensions") or {}):
        await websocket.send_denial_response(reject_upgrade_response())
    else:
        await websocket.close(code=1008, reason=UPGRADE_REQUIRED_MESSAGE)
