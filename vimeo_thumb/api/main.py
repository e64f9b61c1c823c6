"""FastAPI web server for the Vimeo thumbnail proxy"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from .thumb_routes import router as thumb_router

from ..clients.vimeo_client import VimeoClient
from ..core.exceptions import ThumbnailProxyError
from ..core.settings import Settings, get_settings
from ..core.logging import setup_logging, get_logger, get_performance_metrics
from ..services.thumbnail_service import ThumbnailService

API_VERSION = "1.0.0"

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response model"""
    status: str
    timestamp: str
    version: str
    environment: str
    uptime_seconds: float
    metrics: Dict[str, Any]


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration to serve with (if None, loads global settings)
        transport: Optional httpx transport for the upstream client
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info("Starting Vimeo thumbnail proxy...")

        vimeo_client = VimeoClient(settings, transport=transport)
        app.state.thumbnail_service = ThumbnailService(vimeo_client)
        app.state.started_at = datetime.now()

        try:
            yield
        finally:
            await vimeo_client.aclose()
            logger.info("Vimeo thumbnail proxy stopped")

    app = FastAPI(
        title="Vimeo Thumbnail Proxy",
        description="Streams Vimeo video thumbnails resolved through the Vimeo API",
        version=API_VERSION,
        lifespan=lifespan
    )

    # Add custom middleware (order matters!)
    app.add_middleware(SecurityHeadersMiddleware, api_version=API_VERSION)
    app.add_middleware(RequestLoggingMiddleware)

    # Thumbnails are embedded cross-origin by the lite-vimeo element
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(thumb_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint"""
        started_at = request.app.state.started_at
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now().isoformat(),
            version=API_VERSION,
            environment=settings.environment,
            uptime_seconds=(datetime.now() - started_at).total_seconds(),
            metrics=get_performance_metrics()
        )

    @app.exception_handler(ThumbnailProxyError)
    async def thumbnail_error_handler(request: Request, exc: ThumbnailProxyError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error} on {request.url.path}: {exc}")
        else:
            logger.warning(f"{exc.error} on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "detail": str(exc)}
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc):
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "path": str(request.url.path)}
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "vimeo_thumb.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="info"
    )
