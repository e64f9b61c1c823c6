"""Custom middleware for the FastAPI application"""

import time
import logging
from typing import Callable, Optional
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

THUMB_PATH_PREFIX = "/thumb/"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its video ID, status and timing"""

    @staticmethod
    def _video_id(request: Request) -> Optional[str]:
        # /api/thumb?videoid=... or /thumb/{videoid}
        video_id = request.query_params.get("videoid")
        if video_id is None and request.url.path.startswith(THUMB_PATH_PREFIX):
            video_id = request.url.path[len(THUMB_PATH_PREFIX):] or None
        return video_id

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        video_id = self._video_id(request)
        context = {'path': request.url.path, 'video_id': video_id}

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.perf_counter() - start_time
            logger.error(
                f"{request.method} {request.url.path} failed after {process_time:.3f}s: {e}",
                extra={**context, 'duration': process_time},
                exc_info=True
            )
            return JSONResponse(
                status_code=500,
                content={"error": "internal_error", "detail": "Internal server error"}
            )

        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"

        # Headers only: a thumbnail body is still streaming at this point
        message = f"{request.method} {request.url.path} -> {response.status_code}"
        if video_id is not None:
            message += f" video={video_id}"
        if response.status_code == 200 and video_id is not None:
            message += (
                f" type={response.headers.get('content-type', '-')}"
                f" length={response.headers.get('content-length', '-')}"
            )
        message += f" ({process_time:.3f}s)"

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level, message,
            extra={**context, 'status': response.status_code, 'duration': process_time}
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses"""
    
    def __init__(self, app, api_version: str = "1.0.0"):
        super().__init__(app)
        self.api_version = api_version
    
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-API-Version"] = self.api_version
        
        return response
