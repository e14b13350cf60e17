"""
Delegation of OpenAI-style API calls (chat completions, embeddings, models) to
an API translation service.

The router only depends on ``ApiDelegateBase``: anything that turns a request
into a response, or raises ``ApiDelegateError``, can be plugged in with the
``API_DELEGATE`` setting.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, Optional

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace

from edge_relay.utils import mask_url_secrets
from edge_relay.utils.exception_logging import (
    error_message,
    find_exception_in_exception_groups,
    log_exception_with_details,
)
from edge_relay.utils.traced_requests import traced_request
from edge_relay.vars import API_TIMEOUT, API_TRANSLATOR_URL

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


class ApiDelegateError(Exception):
    """Failure that carries the HTTP status to answer with."""

    def __init__(self, message: str = "", status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiDelegateBase(ABC):
    @abstractmethod
    async def handle(self, request: Request) -> Response:
        pass


def api_delegate(name: str = os.getenv("API_DELEGATE", "HttpApiDelegate")) -> ApiDelegateBase:
    if name == "HttpApiDelegate":
        return HttpApiDelegate()
    cls = globals().get(name)
    if isinstance(cls, type) and issubclass(cls, ApiDelegateBase):
        return cls()
    else:
        raise ValueError(f"Unknown API delegate type: {name}")


def _text_response(message: str, status_code: int) -> Response:
    return Response(
        message,
        status_code=status_code,
        headers={"content-type": "text/plain;charset=UTF-8"},
    )


async def delegate_api_request(request: Request, delegate: ApiDelegateBase) -> Response:
    """
    Hand the request to the delegate and pass its response through unchanged.
    Failures become plain-text responses: the status of an ApiDelegateError, or
    500 for anything else.
    """
    try:
        return await delegate.handle(request)
    except Exception as e:
        log_exception_with_details(logger, "[API] API request error:", e)
        delegate_error = find_exception_in_exception_groups(e, ApiDelegateError)
        if delegate_error is not None:
            return _text_response(
                error_message(delegate_error.message), delegate_error.status_code
            )
        return _text_response(error_message(e), 500)


class HttpApiDelegate(ApiDelegateBase):
    """Forwards API calls over HTTP to the translation service at ``base_url``."""

    def __init__(
        self,
        base_url: str = API_TRANSLATOR_URL,
        timeout: int = API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def target_url(self, request: Request) -> str:
        url = f"{self.base_url}{request.url.path}"
        query_string = str(request.url.query)
        if query_string:
            url = f"{url}?{query_string}"
        return url

    @staticmethod
    def prepare_headers(request: Request) -> Dict[str, str]:
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() != "host"
        }
        client_ip = request.client.host if request.client else "unknown"
        existing_xff = headers.get("x-forwarded-for", "")
        headers["x-forwarded-for"] = f"{existing_xff}, {client_ip}".strip(", ")
        headers["x-forwarded-proto"] = request.url.scheme
        return headers

    async def handle(self, request: Request) -> Response:
        if not self.base_url:
            raise ApiDelegateError(
                "API_TRANSLATOR_URL is not configured. API delegation is unavailable.",
                status_code=503,
            )

        target_url = self.target_url(request)
        with traced_request(
            tracer,
            operation="api_delegate",
            target_url=target_url,
            start_message=f"[API] {request.method} {request.url.path} -> {mask_url_secrets(target_url)}",
            extra_attrs={"api.method": request.method},
        ) as span:
            body = await request.body()
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout), transport=self.transport
            )
            try:
                upstream_request = client.build_request(
                    request.method,
                    target_url,
                    headers=self.prepare_headers(request),
                    content=body,
                )
                response = await client.send(upstream_request, stream=True)
            except httpx.TimeoutException as e:
                await client.aclose()
                span.set_attribute("api.error", "timeout")
                raise ApiDelegateError("Gateway timeout", status_code=504) from e
            except httpx.ConnectError as e:
                await client.aclose()
                span.set_attribute("api.error", "connection_failed")
                raise ApiDelegateError(
                    "Bad gateway - cannot connect to API translator", status_code=502
                ) from e
            except BaseException:
                await client.aclose()
                raise

            span.set_attribute("api.status_code", response.status_code)
            response_headers = {
                name: value
                for name, value in response.headers.items()
                if name.lower() not in HOP_BY_HOP_HEADERS
                and name.lower() not in ("content-length", "content-encoding")
            }

            async def stream_body() -> AsyncIterator[bytes]:
                try:
                    async for chunk in response.aiter_bytes():
                        yield chunk
                finally:
                    await response.aclose()
                    await client.aclose()

            return StreamingResponse(
                stream_body(),
                status_code=response.status_code,
                headers=response_headers,
            )
