import pytest
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient
from starlette.testclient import WebSocketDenialResponse
from starlette.websockets import WebSocketDisconnect

from edge_relay import routes
from edge_relay.api_delegate import ApiDelegateBase
from edge_relay.relay import endpoint
from edge_relay.utils_tests.fakes import EchoUpstreamConnector

WS_HEADERS = {"upgrade": "websocket"}


class RecordingDelegate(ApiDelegateBase):
    def __init__(self):
        self.paths = []

    async def handle(self, request):
        self.paths.append(request.url.path)
        return PlainTextResponse("delegated")


@pytest.fixture(scope="module")
def test_client():
    from edge_relay.server import app

    with TestClient(app) as client:
        yield client


@pytest.fixture
def static_root(tmp_path, monkeypatch):
    (tmp_path / "index.html").write_text("<h1>Live</h1>")
    monkeypatch.setattr("edge_relay.static_assets.STATIC_ROOT", str(tmp_path))
    monkeypatch.setattr("edge_relay.static_assets.STATIC_ORIGIN", "")
    return tmp_path


@pytest.fixture
def delegate(monkeypatch):
    recording = RecordingDelegate()
    monkeypatch.setattr(routes, "delegate", recording)
    return recording


@pytest.fixture
def echo_upstream(monkeypatch):
    created = []

    def _factory(url, emit, open_timeout=None):
        connector = EchoUpstreamConnector(url, emit)
        created.append(connector)
        return connector

    monkeypatch.setattr(endpoint, "UpstreamConnector", _factory)
    return created


@pytest.mark.parametrize("path", ["/", "/v1/chat/completions", "/anything/else"])
def test_options_returns_cors_headers_without_body(test_client, path):
    response = test_client.options(path)

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert (
        response.headers["access-control-allow-headers"]
        == "Content-Type, Authorization"
    )


def test_root_and_index_serve_the_same_document(test_client, static_root):
    root = test_client.get("/")
    index = test_client.get("/index.html")

    assert root.status_code == index.status_code == 200
    assert root.content == index.content == b"<h1>Live</h1>"
    assert root.headers["content-type"] == index.headers["content-type"]
    assert root.headers["cache-control"] == "public, max-age=31536000"


def test_missing_static_asset(test_client, static_root):
    response = test_client.get("/nothing.css")

    assert response.status_code == 404
    assert response.text == "Not Found"


def test_api_paths_never_reach_static_files(test_client, static_root, delegate):
    (static_root / "v1" / "chat").mkdir(parents=True)
    (static_root / "v1" / "chat" / "completions").write_text("static copy")

    response = test_client.post("/v1/chat/completions", json={"model": "gemini"})

    assert response.status_code == 200
    assert response.text == "delegated"
    assert delegate.paths == ["/v1/chat/completions"]


def test_unhandled_error_becomes_500(test_client, monkeypatch):
    async def explode(path):
        raise RuntimeError("asset backend exploded")

    monkeypatch.setattr(routes, "serve_static", explode)

    response = test_client.get("/index.html")

    assert response.status_code == 500
    assert response.text == "asset backend exploded"


def test_unhandled_error_without_message(test_client, monkeypatch):
    async def explode(path):
        raise RuntimeError()

    monkeypatch.setattr(routes, "serve_static", explode)

    response = test_client.get("/index.html")

    assert response.status_code == 500
    assert response.text == "Unknown error occurred"


def test_websocket_frames_are_relayed(test_client, echo_upstream):
    path = "/ws/google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
    with test_client.websocket_connect(f"{path}?key=k-123", headers=WS_HEADERS) as ws:
        ws.send_text("setup")
        assert ws.receive_text() == "echo:setup"
        ws.send_text("turn")
        assert ws.receive_text() == "echo:turn"

    assert echo_upstream[0].url == (
        f"wss://generativelanguage.googleapis.com{path}?key=k-123"
    )


def test_upstream_close_reaches_the_client(test_client, echo_upstream):
    with test_client.websocket_connect("/ws/live", headers=WS_HEADERS) as ws:
        ws.send_text("bye")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_text()

    assert exc_info.value.code == 1000
    assert exc_info.value.reason == "done"


def test_plain_http_upgrade_request_gets_400(test_client, echo_upstream):
    response = test_client.get("/ws/live", headers={"upgrade": "websocket"})

    assert response.status_code == 400
    assert response.text == "Expected WebSocket connection"
    assert echo_upstream == []


def test_websocket_without_upgrade_header_is_refused(test_client, echo_upstream):
    with pytest.raises(WebSocketDenialResponse) as exc_info:
        with test_client.websocket_connect("/ws/live", headers={"upgrade": "h2c"}):
            pass

    assert exc_info.value.status_code == 400
    assert exc_info.value.text == "Expected WebSocket connection"
    assert echo_upstream == []


def test_metrics_are_exposed(test_client):
    response = test_client.get("/metrics")

    assert response.status_code == 200
    assert "relay_sessions_total" in response.text
