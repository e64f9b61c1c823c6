"""Tests for the Vimeo API and CDN client"""

import time

import httpx
import pytest

from vimeo_thumb.clients.vimeo_client import VimeoClient, build_image_url
from vimeo_thumb.core.exceptions import (
    ConfigurationError, MalformedMetadataError, UpstreamImageError,
    UpstreamMetadataError, UpstreamTimeoutError
)
from vimeo_thumb.core.logging import get_performance_metrics
from vimeo_thumb.core.settings import Settings
from vimeo_thumb.models.video_models import Video


class TestBuildImageUrl:
    """Test CDN URL derivation"""

    def test_full_url(self):
        url = build_image_url("https://i.vimeocdn.com/video", "456", "jpg", "200", "100", "80")
        assert url == "https://i.vimeocdn.com/video/456.jpg?mw=200&mh=100&q=80"

    def test_empty_type_keeps_bare_dot(self):
        url = build_image_url("https://i.vimeocdn.com/video", "456", "", "1600", "900", "70")
        assert url == "https://i.vimeocdn.com/video/456.?mw=1600&mh=900&q=70"

    def test_empty_dimensions_still_sent(self):
        url = build_image_url("https://i.vimeocdn.com/video/", "456", "webp", "", "", "")
        assert url == "https://i.vimeocdn.com/video/456.webp?mw=&mh=&q="


class TestVimeoClient:
    """Test Vimeo client functionality"""

    @pytest.fixture
    def vimeo_client(self, test_settings, mock_transport):
        """Create Vimeo client for testing"""
        return VimeoClient(test_settings, transport=mock_transport)

    def test_client_requires_token(self):
        with pytest.raises(ConfigurationError, match="Vimeo API token is required"):
            VimeoClient(Settings(vimeo_token=""))

    @pytest.mark.asyncio
    async def test_get_video_request_format(self, vimeo_client, fake_vimeo):
        """Metadata request carries the bearer token, user agent and field filter"""
        async with vimeo_client:
            video = await vimeo_client.get_video("123")

        assert isinstance(video, Video)
        assert video.pictures.uri == "/videos/123/pictures/456"

        request = fake_vimeo.metadata_requests[0]
        assert request.method == "GET"
        assert request.url.path == "/videos/123"
        assert request.url.params["fields"] == "pictures"
        assert request.headers["Authorization"] == "Bearer test_vimeo_token"
        assert request.headers["User-Agent"] == "lite-vimeo-embed"

    @pytest.mark.asyncio
    async def test_video_id_is_single_path_segment(self, vimeo_client, fake_vimeo):
        async with vimeo_client:
            await vimeo_client.get_video("../me")

        assert fake_vimeo.metadata_requests[0].url.raw_path.startswith(b"/videos/..%2Fme")

    @pytest.mark.asyncio
    async def test_get_image_id(self, vimeo_client):
        async with vimeo_client:
            assert await vimeo_client.get_image_id("123") == "456"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {},
        {"pictures": None},
        {"pictures": {"active": True}},
        {"pictures": {"uri": ""}},
        {"pictures": {"uri": "/"}},
    ])
    async def test_missing_pictures_uri(self, vimeo_client, fake_vimeo, payload):
        fake_vimeo.metadata = payload

        async with vimeo_client:
            with pytest.raises(MalformedMetadataError):
                await vimeo_client.get_image_id("123")

    @pytest.mark.asyncio
    async def test_status_error(self, vimeo_client, fake_vimeo):
        fake_vimeo.metadata_status = 404
        fake_vimeo.metadata = {"error": "The requested video couldn't be found."}

        async with vimeo_client:
            with pytest.raises(UpstreamMetadataError, match="returned 404"):
                await vimeo_client.get_video("999")

    @pytest.mark.asyncio
    async def test_undecodable_body(self, vimeo_client, fake_vimeo):
        fake_vimeo.metadata_body = b"<html>not json</html>"

        async with vimeo_client:
            with pytest.raises(UpstreamMetadataError, match="Undecodable metadata"):
                await vimeo_client.get_video("123")

    @pytest.mark.asyncio
    async def test_network_error(self, vimeo_client, fake_vimeo):
        fake_vimeo.metadata_errors = [httpx.ConnectError("connection refused")]

        async with vimeo_client:
            with pytest.raises(UpstreamMetadataError, match="Network error"):
                await vimeo_client.get_video("123")

        assert len(fake_vimeo.metadata_requests) == 1

    @pytest.mark.asyncio
    async def test_deadline_exceeded(self, test_settings, mock_transport, fake_vimeo):
        """A stalled metadata call fails close to the configured deadline"""
        settings = test_settings.model_copy(update={"metadata_timeout": 0.2})
        fake_vimeo.metadata_delay = 5.0

        start = time.monotonic()
        async with VimeoClient(settings, transport=mock_transport) as vimeo_client:
            with pytest.raises(UpstreamTimeoutError):
                await vimeo_client.get_video("123")

        assert time.monotonic() - start < 1.5

    @pytest.mark.asyncio
    async def test_transport_timeout(self, vimeo_client, fake_vimeo):
        fake_vimeo.metadata_errors = [httpx.ReadTimeout("timed out")]

        async with vimeo_client:
            with pytest.raises(UpstreamTimeoutError):
                await vimeo_client.get_video("123")

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self, test_settings, mock_transport, fake_vimeo):
        settings = test_settings.model_copy(update={"metadata_retry_attempts": 3})
        fake_vimeo.metadata_errors = [
            httpx.ConnectError("connection refused"),
            httpx.ConnectError("connection refused"),
        ]

        async with VimeoClient(settings, transport=mock_transport) as vimeo_client:
            assert await vimeo_client.get_image_id("123") == "456"

        assert len(fake_vimeo.metadata_requests) == 3
        assert get_performance_metrics("vimeo_metadata")["retries"] == 2

    @pytest.mark.asyncio
    async def test_timeouts_are_not_retried(self, test_settings, mock_transport, fake_vimeo):
        settings = test_settings.model_copy(
            update={"metadata_retry_attempts": 3, "metadata_timeout": 0.2}
        )
        fake_vimeo.metadata_delay = 5.0

        start = time.monotonic()
        async with VimeoClient(settings, transport=mock_transport) as vimeo_client:
            with pytest.raises(UpstreamTimeoutError):
                await vimeo_client.get_video("123")

        assert time.monotonic() - start < 1.5
        assert len(fake_vimeo.metadata_requests) == 1

    @pytest.mark.asyncio
    async def test_status_errors_are_not_retried(self, test_settings, mock_transport, fake_vimeo):
        settings = test_settings.model_copy(update={"metadata_retry_attempts": 3})
        fake_vimeo.metadata_status = 500

        async with VimeoClient(settings, transport=mock_transport) as vimeo_client:
            with pytest.raises(UpstreamMetadataError):
                await vimeo_client.get_video("123")

        assert len(fake_vimeo.metadata_requests) == 1

    @pytest.mark.asyncio
    async def test_open_image(self, vimeo_client, fake_vimeo):
        url = vimeo_client.image_url("456", "jpg", "200", "100", "80")

        async with vimeo_client:
            response = await vimeo_client.open_image(url)
            body = await response.aread()
            await response.aclose()

        assert response.headers["Content-Type"] == "image/jpeg"
        assert body == fake_vimeo.image_body
        assert str(fake_vimeo.image_requests[0].url) == url
        assert "Authorization" not in fake_vimeo.image_requests[0].headers
        assert fake_vimeo.image_streams[0].closed

    @pytest.mark.asyncio
    async def test_open_image_status_error_closes_body(self, vimeo_client, fake_vimeo):
        fake_vimeo.image_status = 404

        async with vimeo_client:
            with pytest.raises(UpstreamImageError, match="CDN returned 404"):
                await vimeo_client.open_image(vimeo_client.image_url("456", "jpg"))

        assert fake_vimeo.image_streams[0].closed

    @pytest.mark.asyncio
    async def test_open_image_network_error(self, vimeo_client, fake_vimeo):
        fake_vimeo.image_error = httpx.ConnectError("connection refused")

        async with vimeo_client:
            with pytest.raises(UpstreamImageError, match="Network error"):
                await vimeo_client.open_image(vimeo_client.image_url("456", "jpg"))

    @pytest.mark.asyncio
    async def test_open_image_timeout(self, vimeo_client, fake_vimeo):
        fake_vimeo.image_error = httpx.ConnectTimeout("timed out")

        async with vimeo_client:
            with pytest.raises(UpstreamTimeoutError):
                await vimeo_client.open_image(vimeo_client.image_url("456", "jpg"))
