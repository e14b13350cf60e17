import pytest

from edge_relay.cors import CORS_HEADERS, preflight_response
from edge_relay.routing import RouteKind, classify_request, header_value


@pytest.mark.parametrize("path", ["/", "/v1/chat/completions", "/ws/live", "/x.js"])
def test_options_is_always_a_preflight(path):
    headers = {"upgrade": "websocket"}
    assert classify_request("OPTIONS", headers, path) is RouteKind.CORS_PREFLIGHT
    assert classify_request("options", {}, path) is RouteKind.CORS_PREFLIGHT


@pytest.mark.parametrize("value", ["websocket", "WebSocket", " WEBSOCKET "])
def test_upgrade_header_selects_the_relay(value):
    assert classify_request("GET", {"Upgrade": value}, "/ws") is RouteKind.WEBSOCKET_RELAY


def test_upgrade_wins_over_api_suffix():
    headers = {"upgrade": "websocket"}
    assert (
        classify_request("GET", headers, "/v1/models") is RouteKind.WEBSOCKET_RELAY
    )


@pytest.mark.parametrize(
    "path",
    [
        "/v1/chat/completions",
        "/chat/completions",
        "/v1beta/embeddings",
        "/v1/models",
    ],
)
def test_api_suffixes_are_delegated(path):
    assert classify_request("POST", {}, path) is RouteKind.API_DELEGATE


@pytest.mark.parametrize(
    "path", ["/", "/index.html", "/models/list", "/v1/models.json", "/chat"]
)
def test_everything_else_is_static(path):
    assert classify_request("GET", {"upgrade": "h2c"}, path) is RouteKind.STATIC_ASSET


def test_header_value_is_case_insensitive():
    assert header_value({"Upgrade": "websocket"}, "upgrade") == "websocket"
    assert header_value({}, "upgrade") == ""


def test_preflight_response():
    response = preflight_response()

    assert response.status_code == 200
    assert response.body == b""
    for name, value in CORS_HEADERS.items():
        assert response.headers[name] == value
