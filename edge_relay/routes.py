import logging

from fastapi import APIRouter, Request, WebSocket
from fastapi.responses import Response

from edge_relay.api_delegate import api_delegate, delegate_api_request
from edge_relay.cors import preflight_response
from edge_relay.relay.endpoint import relay_websocket
from edge_relay.relay.validator import reject_upgrade_response
from edge_relay.routing import RouteKind, classify_request
from edge_relay.static_assets import serve_static
from edge_relay.utils import mask_url_secrets
from edge_relay.utils.exception_logging import error_message, log_exception_with_details
from edge_relay.vars import API_DELEGATE

router = APIRouter()
delegate = api_delegate(API_DELEGATE)

logger = logging.getLogger("uvicorn.error")


async def dispatch(request: Request) -> Response:
    """Pick the treatment for a plain HTTP request and never let an error escape."""
    try:
        logger.info(f"[Router] {request.method} {mask_url_secrets(str(request.url))}")
        kind = classify_request(request.method, request.headers, request.url.path)
        if kind is RouteKind.CORS_PREFLIGHT:
            return preflight_response()
        if kind is RouteKind.WEBSOCKET_RELAY:
            # Upgrade requested but the server did not complete the handshake
            return reject_upgrade_response()
        if kind is RouteKind.API_DELEGATE:
            return await delegate_api_request(request, delegate)
        return await serve_static(request.url.path)
    except Exception as e:
        log_exception_with_details(logger, "[Router] Request handling error:", e)
        return Response(
            error_message(e),
            status_code=500,
            headers={"content-type": "text/plain;charset=UTF-8"},
        )


@router.websocket("/{path:path}")
async def relay(websocket: WebSocket, path: str):
    await relay_websocket(websocket)


@router.api_route(
    "/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
)
async def handle_request(request: Request, path: str):
    """Catch-all route for everything that is not a WebSocket upgrade."""
    return await dispatch(request)
