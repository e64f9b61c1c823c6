"""Pytest configuration and shared fixtures"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from vimeo_thumb.api.main import create_app
from vimeo_thumb.core.logging import reset_performance_metrics
from vimeo_thumb.core.settings import Settings


TEST_TOKEN = "test_vimeo_token"
IMAGE_BYTES = bytes(range(256)) * 40  # 10240 bytes


class TrackingStream(httpx.AsyncByteStream):
    """Image body that records whether it was closed, optionally failing mid-way"""

    def __init__(self, body: bytes, chunk_size: int = 1024, fail_after_chunks: Optional[int] = None):
        self.body = body
        self.chunk_size = chunk_size
        self.fail_after_chunks = fail_after_chunks
        self.closed = False

    async def __aiter__(self):
        for index, start in enumerate(range(0, len(self.body), self.chunk_size)):
            if self.fail_after_chunks is not None and index >= self.fail_after_chunks:
                raise httpx.ReadError("connection reset by peer")
            yield self.body[start:start + self.chunk_size]

    async def aclose(self) -> None:
        self.closed = True


class FakeVimeo:
    """Stands in for api.vimeo.com and i.vimeocdn.com"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.metadata: Any = {"pictures": {"uri": "/videos/123/pictures/456"}}
        self.metadata_status = 200
        self.metadata_body: Optional[bytes] = None
        self.metadata_delay = 0.0
        self.metadata_errors: List[Exception] = []
        self.image_body = IMAGE_BYTES
        self.image_status = 200
        self.image_headers: Dict[str, str] = {"Content-Type": "image/jpeg"}
        self.image_fail_after_chunks: Optional[int] = None
        self.image_error: Optional[Exception] = None
        self.image_streams: List[TrackingStream] = []

    @property
    def metadata_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == "api.vimeo.com"]

    @property
    def image_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == "i.vimeocdn.com"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "api.vimeo.com":
            if self.metadata_delay:
                await asyncio.sleep(self.metadata_delay)
            if self.metadata_errors:
                error = self.metadata_errors.pop(0)
                error.request = request
                raise error
            if self.metadata_body is not None:
                return httpx.Response(self.metadata_status, content=self.metadata_body)
            return httpx.Response(self.metadata_status, json=self.metadata)

        if request.url.host == "i.vimeocdn.com":
            if self.image_error is not None:
                self.image_error.request = request
                raise self.image_error
            stream = TrackingStream(self.image_body, fail_after_chunks=self.image_fail_after_chunks)
            self.image_streams.append(stream)
            headers = dict(self.image_headers)
            headers["Content-Length"] = str(len(self.image_body))
            return httpx.Response(self.image_status, headers=headers, stream=stream)

        return httpx.Response(404)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Setup test environment variables"""
    monkeypatch.setenv("VIMEO_TOKEN", TEST_TOKEN)
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_performance_metrics()


@pytest.fixture
def test_settings():
    """Settings pointing at the default Vimeo hosts with fast retries"""
    return Settings(
        vimeo_token=TEST_TOKEN,
        metadata_timeout=2.0,
        image_timeout=5.0,
        retry_base_delay=0.01
    )


@pytest.fixture
def fake_vimeo():
    """Fake upstream for both outbound calls"""
    return FakeVimeo()


@pytest.fixture
def mock_transport(fake_vimeo):
    """httpx transport routed to the fake upstream"""
    return httpx.MockTransport(fake_vimeo.handler)


@pytest.fixture
def client(test_settings, mock_transport):
    """Test client for an app whose upstream calls hit the fake upstream"""
    app = create_app(settings=test_settings, transport=mock_transport)
    with TestClient(app) as c:
        yield c
