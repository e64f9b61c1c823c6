"""Thumbnail proxy endpoints"""

import logging
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from ..core.exceptions import StreamingError
from ..services.thumbnail_service import ThumbnailService, parse_thumbnail_request

logger = logging.getLogger(__name__)

router = APIRouter(tags=["thumbnails"])

# Headers copied from the CDN response. The body is relayed undecoded, so a
# content encoding has to travel with it.
MIRRORED_HEADERS = ("content-length", "content-encoding")


async def _relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the upstream body as received, closing it on every exit path"""
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        logger.error(f"Streaming thumbnail from {upstream.request.url} failed: {e}")
        raise StreamingError(f"Failed while streaming {upstream.request.url}: {e}") from e
    finally:
        await upstream.aclose()


class UpstreamStreamingResponse(StreamingResponse):
    """Streams a CDN response through with its type and length"""

    def __init__(self, upstream: httpx.Response):
        headers = {
            name: upstream.headers[name]
            for name in MIRRORED_HEADERS
            if name in upstream.headers
        }
        super().__init__(
            _relay_body(upstream),
            status_code=200,
            headers=headers,
            media_type=upstream.headers.get("content-type")
        )
        self.upstream = upstream

    async def __call__(self, scope, receive, send) -> None:
        # A client disconnect abandons the body iterator without closing it
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.upstream.aclose()


def get_thumbnail_service(request: Request) -> ThumbnailService:
    """Dependency to get the thumbnail service created at startup"""
    return request.app.state.thumbnail_service


@router.get("/api/thumb", response_class=StreamingResponse)
async def get_thumbnail(
    videoid: str = Query("", description="Vimeo video ID"),
    image_type: str = Query("", alias="type", description="Image type, e.g. jpg or webp"),
    mw: str = Query("", description="Maximum width"),
    mh: str = Query("", description="Maximum height"),
    quality: str = Query("", alias="q", description="Image quality"),
    service: ThumbnailService = Depends(get_thumbnail_service)
):
    """
    Proxy a video's thumbnail from the Vimeo CDN.

    Returns:
        The CDN image with its Content-Type and Content-Length
    """
    thumb_request = parse_thumbnail_request(videoid, image_type, mw, mh, quality)
    upstream = await service.open_thumbnail(thumb_request)
    return UpstreamStreamingResponse(upstream)


@router.get("/thumb/{videoid}", response_class=StreamingResponse)
async def get_thumbnail_by_path(
    videoid: str,
    image_type: str = Query("", alias="type", description="Image type, e.g. jpg or webp"),
    mw: str = Query("", description="Maximum width"),
    mh: str = Query("", description="Maximum height"),
    quality: str = Query("", alias="q", description="Image quality"),
    service: ThumbnailService = Depends(get_thumbnail_service)
):
    """Same as /api/thumb, addressed the way the lite-vimeo embed builds poster URLs"""
    thumb_request = parse_thumbnail_request(videoid, image_type, mw, mh, quality)
    upstream = await service.open_thumbnail(thumb_request)
    return UpstreamStreamingResponse(upstream)
