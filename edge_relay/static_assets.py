"""
Static asset delivery for the front-end bundled with the relay.

Assets come either from a directory on disk (``STATIC_ROOT``) or, when
``STATIC_ORIGIN`` is set, from the origin that hosts the site.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx
from fastapi.responses import Response

from edge_relay.vars import STATIC_ORIGIN, STATIC_ROOT

logger = logging.getLogger("uvicorn.error")

INDEX_DOCUMENT = "/index.html"
NOT_FOUND_DOCUMENT = "/404.html"
CACHE_CONTROL = "public, max-age=31536000"

CONTENT_TYPES = {
    "js": "application/javascript",
    "css": "text/css",
    "html": "text/html",
    "json": "application/json",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}
DEFAULT_CONTENT_TYPE = "text/plain"


def normalize_asset_path(path: str) -> str:
    if not path or path == "/" or path == INDEX_DOCUMENT:
        return INDEX_DOCUMENT
    return path


def content_type_for(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_CONTENT_TYPE
    return CONTENT_TYPES.get(name.rsplit(".", 1)[-1].lower(), DEFAULT_CONTENT_TYPE)


def _plain_text(body: str, status_code: int) -> Response:
    return Response(
        body,
        status_code=status_code,
        headers={"content-type": "text/plain;charset=UTF-8"},
    )


class AssetSourceBase(ABC):
    @abstractmethod
    async def fetch(self, path: str) -> Optional[bytes]:
        """Return the asset bytes, or None when the asset does not exist."""


class FileSystemAssetSource(AssetSourceBase):
    def __init__(self, root: str = STATIC_ROOT):
        self.root = Path(root).resolve()

    def resolve(self, path: str) -> Optional[Path]:
        candidate = (self.root / path.lstrip("/")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        return candidate if candidate.is_file() else None

    async def fetch(self, path: str) -> Optional[bytes]:
        file_path = self.resolve(path)
        if file_path is None:
            return None
        return await asyncio.to_thread(file_path.read_bytes)


class HttpAssetSource(AssetSourceBase):
    def __init__(
        self,
        origin: str = STATIC_ORIGIN,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.origin = origin.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, path: str) -> Optional[bytes]:
        url = f"{self.origin}{path}"
        logger.debug(f"[Static] Fetching static asset from {url}")
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
        if not response.is_success:
            logger.info(f"[Static] {url} answered {response.status_code}")
            return None
        return response.content


def asset_source() -> AssetSourceBase:
    if STATIC_ORIGIN:
        return HttpAssetSource(STATIC_ORIGIN)
    return FileSystemAssetSource(STATIC_ROOT)


async def _not_found(source: AssetSourceBase) -> Response:
    try:
        page = await source.fetch(NOT_FOUND_DOCUMENT)
    except Exception as e:
        logger.error(f"[Static] Error loading 404 page: {e}")
        page = None
    if page is not None:
        return Response(
            page,
            status_code=404,
            headers={"content-type": "text/html;charset=UTF-8"},
        )
    return _plain_text("Not Found", 404)


async def serve_static(path: str, source: Optional[AssetSourceBase] = None) -> Response:
    source = source or asset_source()
    asset_path = normalize_asset_path(path)
    logger.debug(f"[Static] Trying to load asset: {asset_path}")

    try:
        asset = await source.fetch(asset_path)
    except Exception as e:
        logger.error(f"[Static] Error fetching asset {asset_path}: {e}")
        return _plain_text("Error loading resource", 500)

    if asset is None:
        logger.warning(f"[Static] Asset not found: {asset_path}")
        return await _not_found(source)

    return Response(
        asset,
        headers={
            "content-type": f"{content_type_for(asset_path)};charset=UTF-8",
            "cache-control": CACHE_CONTROL,
        },
    )
