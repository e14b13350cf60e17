import asyncio

import pytest

from edge_relay.relay import endpoint
from edge_relay.relay.endpoint import relay_websocket
from edge_relay.relay.validator import (
    UPGRADE_REQUIRED_MESSAGE,
    is_websocket_upgrade,
    reject_upgrade_response,
)
from edge_relay.utils_tests.fakes import FakeClientWebSocket, settle

LIVE_PATH = "/ws/google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"


class TestUpgradeValidation:
    def test_websocket_upgrade_is_valid(self):
        assert is_websocket_upgrade({"upgrade": "websocket"})
        assert is_websocket_upgrade({"Upgrade": "WebSocket"})

    def test_other_requests_are_invalid(self):
        assert not is_websocket_upgrade({})
        assert not is_websocket_upgrade({"upgrade": "h2c"})
        assert not is_websocket_upgrade({"connection": "upgrade"})

    def test_rejection_response(self):
        response = reject_upgrade_response()
        assert response.status_code == 400
        assert response.body == UPGRADE_REQUIRED_MESSAGE.encode()


@pytest.mark.asyncio
async def test_non_upgrade_request_gets_400_and_no_upstream(connector_factory, upstreams):
    websocket = FakeClientWebSocket(
        headers={}, extensions={"websocket.http.response": {}}
    )

    result = await relay_websocket(websocket, connector_factory=connector_factory)

    assert result is None
    assert websocket.denial.status_code == 400
    assert websocket.denial.body == b"Expected WebSocket connection"
    assert not websocket.accepted
    assert upstreams == []


@pytest.mark.asyncio
async def test_non_upgrade_request_without_denial_support_is_closed(
    connector_factory, upstreams
):
    websocket = FakeClientWebSocket(headers={"upgrade": "h2c"})

    await relay_websocket(websocket, connector_factory=connector_factory)

    assert websocket.close_calls == [(1008, UPGRADE_REQUIRED_MESSAGE)]
    assert upstreams == []


@pytest.mark.asyncio
async def test_session_targets_fixed_upstream_and_is_tracked(
    connector_factory, upstreams
):
    websocket = FakeClientWebSocket(path=LIVE_PATH, query="key=abc123")

    task = asyncio.create_task(
        relay_websocket(websocket, connector_factory=connector_factory)
    )
    await settle()

    upstream = upstreams[0]
    assert upstream.url == (
        f"wss://generativelanguage.googleapis.com{LIVE_PATH}?key=abc123"
    )
    tracked = endpoint.sessions.sessions()
    assert len(tracked) == 1

    upstream.open()
    upstream.remote_close(1000, "done")
    session = await asyncio.wait_for(task, timeout=1)

    assert websocket.close_calls == [(1000, "done")]
    assert endpoint.sessions.get(session.session_id) is None
