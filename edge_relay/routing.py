"""
Per-request decision between the four treatments the edge relay knows about.
"""

from enum import Enum
from typing import Mapping

API_ROUTE_SUFFIXES = ("/chat/completions", "/embeddings", "/models")


class RouteKind(str, Enum):
    CORS_PREFLIGHT = "cors-preflight"
    WEBSOCKET_RELAY = "websocket-relay"
    API_DELEGATE = "api-delegate"
    STATIC_ASSET = "static-asset"


def header_value(headers: Mapping[str, str], name: str) -> str:
    """Case-insensitive header lookup that also works on plain dicts."""
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                value = candidate
                break
    return value or ""


def wants_websocket(headers: Mapping[str, str]) -> bool:
    return header_value(headers, "upgrade").strip().lower() == "websocket"


def is_api_path(path: str) -> bool:
    return path.endswith(API_ROUTE_SUFFIXES)


def classify_request(method: str, headers: Mapping[str, str], path: str) -> RouteKind:
    if method.upper() == "OPTIONS":
        return RouteKind.CORS_PREFLIGHT
    if wants_websocket(headers):
        return RouteKind.WEBSOCKET_RELAY
    if is_api_path(path):
        return RouteKind.API_DELEGATE
    return RouteKind.STATIC_ASSET
