import logging
from typing import Callable, Optional

from fastapi import WebSocket
from opentelemetry import trace

from edge_relay.relay.registry import session_registry
from edge_relay.relay.session import RelaySession
from edge_relay.relay.upstream import UpstreamConnector, build_upstream_url
from edge_relay.relay.validator import is_websocket_upgrade, reject_upgrade
from edge_relay.utils import mask_url_secrets
from edge_relay.utils.exception_logging import log_exception_with_details
from edge_relay.utils.traced_requests import traced_request
from edge_relay.vars import RELAY_SESSION_REGISTRY

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

sessions = session_registry(RELAY_SESSION_REGISTRY)


async def relay_websocket(
    websocket: WebSocket,
    connector_factory: Optional[Callable[..., UpstreamConnector]] = None,
) -> Optional[RelaySession]:
    """
    Relay an inbound WebSocket to the upstream streaming endpoint until either
    side closes. Requests that are not WebSocket upgrades are refused with a 400
    before any upstream connection is attempted.
    """
    if not is_websocket_upgrade(websocket.headers):
        await reject_upgrade(websocket)
        return None

    target_url = build_upstream_url(websocket.url.path, websocket.url.query)
    session = RelaySession(
        websocket, target_url, connector_factory=connector_factory or UpstreamConnector
    )
    sessions.set(session.session_id, session)
    try:
        with traced_request(
            tracer,
            operation="relay_session",
            target_url=target_url,
            start_message=(
                f"[Relay] Session {session.session_id} -> {mask_url_secrets(target_url)}"
            ),
            extra_attrs={"relay.session_id": session.session_id},
        ) as span:
            await session.run()
            span.set_attribute("relay.final_state", session.state.value)
    except Exception as e:
        log_exception_with_details(logger, f"[Relay] Session {session.session_id}:", e)
    finally:
        sessions.pop(session.session_id)
    return session
