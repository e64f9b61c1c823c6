"""Vimeo API and thumbnail CDN client"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote, urlencode

import httpx

from ..core.settings import Settings, get_settings
from ..core.exceptions import (
    ConfigurationError, MalformedMetadataError, UpstreamImageError,
    UpstreamMetadataError, UpstreamTimeoutError
)
from ..core.logging import log_performance
from ..core.retry import RetryError, RetryPolicy, retry_async
from ..models.video_models import Video

# Setup logging
logger = logging.getLogger(__name__)


def build_image_url(
    cdn_base_url: str,
    image_id: str,
    image_type: str,
    max_width: str,
    max_height: str,
    quality: str
) -> str:
    """
    Build the CDN URL of a thumbnail rendition.

    All three query parameters are always present, even when empty, and an
    empty ``image_type`` leaves a bare dot after the image ID.

    Args:
        cdn_base_url: CDN base, e.g. ``https://i.vimeocdn.com/video``
        image_id: Image identifier taken from the pictures URI
        image_type: File extension
        max_width: Value of ``mw``
        max_height: Value of ``mh``
        quality: Value of ``q``

    Returns:
        Absolute CDN URL
    """
    query = urlencode([("mw", max_width), ("mh", max_height), ("q", quality)])
    return f"{cdn_base_url.rstrip('/')}/{quote(image_id, safe='')}.{image_type}?{query}"


class VimeoClient:
    """
    Client for the two upstream calls of a thumbnail lookup: the Vimeo API
    video metadata request and the CDN image request.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Vimeo client.

        Args:
            settings: Application settings (if None, loads global settings)
            transport: Optional httpx transport, used to stub upstreams
        """
        self.settings = settings or get_settings()

        if not self.settings.vimeo_token:
            raise ConfigurationError("Vimeo API token is required (set VIMEO_TOKEN)")

        self.client = httpx.AsyncClient(
            limits=httpx.Limits(
                max_connections=100,
                max_keepalive_connections=20
            ),
            timeout=self.settings.image_timeout,
            follow_redirects=True,
            transport=transport
        )

        self.api_base_url = self.settings.vimeo_api_base_url.rstrip('/')
        self.retry_policy = RetryPolicy.from_settings(self.settings)

    async def __aenter__(self):
        """Async context manager entry"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool"""
        await self.client.aclose()

    @log_performance("vimeo_metadata")
    async def get_video(self, video_id: str) -> Video:
        """
        Fetch the pictures metadata of a video.

        Args:
            video_id: Vimeo video ID

        Returns:
            Decoded video metadata

        Raises:
            UpstreamTimeoutError: When the lookup exceeds its deadline
            UpstreamMetadataError: For transport, status or decode errors
        """
        try:
            return await retry_async(
                lambda remaining: self._request_video(video_id, remaining),
                self.retry_policy,
                operation="vimeo_metadata"
            )
        except RetryError as e:
            raise UpstreamMetadataError(
                f"Network error fetching metadata for video {video_id}: {e.last_exception}"
            ) from e.last_exception
        except httpx.RequestError as e:
            raise UpstreamMetadataError(f"Request error fetching metadata for video {video_id}: {e}") from e

    async def _request_video(self, video_id: str, timeout: float) -> Video:
        """Make one metadata request bounded by what is left of the lookup deadline"""
        url = f"{self.api_base_url}/videos/{quote(video_id, safe='')}"
        headers = {
            "Authorization": f"Bearer {self.settings.vimeo_token}",
            "User-Agent": self.settings.user_agent
        }

        try:
            response = await asyncio.wait_for(
                self.client.get(url, params={"fields": "pictures"}, headers=headers, timeout=timeout),
                timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeoutError(
                f"Vimeo API did not answer for video {video_id} within {self.settings.metadata_timeout}s"
            ) from e

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamMetadataError(
                f"Vimeo API returned {e.response.status_code} for video {video_id}"
            ) from e

        try:
            return Video.model_validate(response.json())
        except ValueError as e:
            raise UpstreamMetadataError(f"Undecodable metadata for video {video_id}: {e}") from e

    async def get_image_id(self, video_id: str) -> str:
        """
        Resolve the CDN image identifier of a video.

        Raises:
            MalformedMetadataError: When the metadata carries no pictures URI
        """
        video = await self.get_video(video_id)

        if video.pictures is None:
            raise MalformedMetadataError(f"Metadata for video {video_id} has no pictures")

        image_id = video.pictures.image_id
        if not image_id:
            raise MalformedMetadataError(f"Metadata for video {video_id} has no pictures URI")

        logger.debug(f"Video {video_id} resolved to image {image_id}")
        return image_id

    def image_url(
        self,
        image_id: str,
        image_type: str = "",
        max_width: str = "",
        max_height: str = "",
        quality: str = ""
    ) -> str:
        """Build a CDN URL against the configured CDN base"""
        return build_image_url(
            self.settings.vimeo_cdn_base_url, image_id, image_type,
            max_width, max_height, quality
        )

    @log_performance("cdn_image")
    async def open_image(self, url: str) -> httpx.Response:
        """
        Start fetching a CDN image without reading its body.

        The caller owns the returned response and must ``aclose()`` it.

        Raises:
            UpstreamTimeoutError: When the CDN does not answer in time
            UpstreamImageError: For transport errors or a non-2xx status
        """
        request = self.client.build_request("GET", url, timeout=self.settings.image_timeout)

        try:
            response = await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"CDN did not answer within {self.settings.image_timeout}s: {url}") from e
        except httpx.RequestError as e:
            raise UpstreamImageError(f"Network error fetching {url}: {e}") from e

        if not response.is_success:
            await response.aclose()
            raise UpstreamImageError(f"CDN returned {response.status_code} for {url}")

        return response
