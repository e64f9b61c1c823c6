"""Thumbnail lookup pipeline: metadata fetch, CDN URL derivation, image fetch"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from ..clients.vimeo_client import VimeoClient
from ..core.exceptions import InvalidParameterError, MissingParameterError
from ..models.video_models import ThumbnailRequest

logger = logging.getLogger(__name__)


def parse_thumbnail_request(
    video_id: Optional[str],
    image_type: str = "",
    max_width: str = "",
    max_height: str = "",
    quality: str = ""
) -> ThumbnailRequest:
    """
    Validate raw query parameters.

    Raises:
        MissingParameterError: When ``videoid`` is absent or empty
        InvalidParameterError: When another parameter has an unusable value
    """
    if not video_id:
        raise MissingParameterError("Query parameter 'videoid' is missing")

    try:
        return ThumbnailRequest(
            videoid=video_id,
            type=image_type,
            mw=max_width,
            mh=max_height,
            q=quality
        )
    except ValidationError as e:
        problems = "; ".join(
            f"{error['loc'][0]}: {error['msg']}" for error in e.errors()
        )
        raise InvalidParameterError(f"Invalid query parameters: {problems}") from e


class ThumbnailService:
    """
    Resolves a thumbnail request to a CDN image and opens it.

    Both upstream calls are strictly sequential; the service holds no
    per-request state.
    """

    def __init__(self, vimeo_client: VimeoClient):
        self.vimeo_client = vimeo_client

    async def resolve_image_url(self, request: ThumbnailRequest) -> str:
        """Look up the video's picture and derive its CDN URL"""
        image_id = await self.vimeo_client.get_image_id(request.video_id)
        return self.vimeo_client.image_url(
            image_id,
            image_type=request.image_type,
            max_width=request.max_width,
            max_height=request.max_height,
            quality=request.quality
        )

    async def open_thumbnail(self, request: ThumbnailRequest) -> httpx.Response:
        """
        Resolve and start fetching the thumbnail.

        Returns:
            Streamed CDN response; the caller must close it
        """
        image_url = await self.resolve_image_url(request)
        logger.info(f"Proxying thumbnail of video {request.video_id} from {image_url}")
        return await self.vimeo_client.open_image(image_url)
